"""
测试公共 Fixtures

- memory_engine / db_session: 每个测试独立的 SQLite 内存库
- temp_dir / temp_file: 写配置文件、日志文件用的临时目录
"""

from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture
def memory_engine():
    """SQLite 内存库引擎，StaticPool 保证所有会话看到同一个库"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(memory_engine) -> Session:
    """与树模型相同配置（不自动 flush）的普通会话"""
    with sessionmaker(bind=memory_engine, autoflush=False)() as session:
        yield session


@pytest.fixture(scope="session")
def temp_dir(tmp_path_factory) -> str:
    return str(tmp_path_factory.mktemp("nestedset"))


@pytest.fixture
def temp_file(temp_dir):
    """写入临时文件并返回路径，测试结束后删除

    使用示例:
        path = temp_file("settings.yaml", "nested_set:\\n  lock_for_update: true\\n")
    """
    written = []

    def _write(filename: str, content: str = "") -> str:
        path = Path(temp_dir) / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
        return str(path)

    yield _write

    for path in written:
        if path.exists():
            path.unlink()
