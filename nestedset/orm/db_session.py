"""
引擎与会话管理

进程内只维护一个引擎和一个 scoped_session。树模型通过 CoreModel.query
拿到当前作用域的会话，结构写操作与业务写操作共用同一个事务。

公开 API:
- db_manager: DatabaseManager 单例
- init_database(): 创建引擎、scoped_session，并绑定 CoreModel.query
- get_engine(): 当前引擎
- db_session_scope(): 提交/回滚/清理一体的上下文管理器
- on_request_end(): 移除当前作用域的会话
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from nestedset.log import get_logger

_logger = get_logger("nestedset.orm.session")

__all__ = [
    'db_manager',
    'init_database',
    'get_engine',
    'db_session_scope',
    'on_request_end',
]

# DatabaseSettings 字段 -> init() 参数
_CONFIG_FIELDS = {
    "url": "database_url",
    "echo": "echo",
    "pool_size": "pool_size",
    "max_overflow": "max_overflow",
    "pool_timeout": "pool_timeout",
    "pool_recycle": "pool_recycle",
    "pool_pre_ping": "pool_pre_ping",
}

_NOT_READY = "数据库未初始化，请先调用 init_database()"


def _engine_options(url: str, echo: bool, pool: Dict[str, Any]) -> Dict[str, Any]:
    """按数据库类型选择 create_engine 参数

    SQLite 不使用连接池参数；内存库必须共用一个连接，否则每个连接看到的是不同的库。
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"echo": echo, **pool}

    options: Dict[str, Any] = {
        "echo": echo,
        "connect_args": {"check_same_thread": False},
    }
    if parsed.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    else:
        options["connect_args"]["timeout"] = pool["pool_timeout"]
    return options


class DatabaseManager:
    """引擎与 scoped_session 的持有者（单例）

    使用示例:
        from nestedset.orm import db_manager

        db_manager.init(database_url="sqlite:///./tree.db")
        with db_manager.engine.begin() as conn:
            ...
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._engine = None
            cls._instance._session_scope = None
        return cls._instance

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError(_NOT_READY)
        return self._engine

    @property
    def session_scope(self) -> scoped_session:
        if self._session_scope is None:
            raise RuntimeError(_NOT_READY)
        return self._session_scope

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None and self._session_scope is not None

    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        logger: logging.Logger = None,
        scopefunc: Callable = None,
        config: Any = None,
        auto_setup_query: bool = True
    ) -> Tuple[Engine, scoped_session]:
        """创建引擎和 scoped_session

        Args:
            database_url: 数据库连接URL
            echo: 是否打印SQL语句
            pool_size / max_overflow / pool_timeout / pool_recycle / pool_pre_ping: 连接池参数，SQLite 下忽略
            logger: 日志记录器，默认 nestedset.orm.session
            scopefunc: scoped_session 的作用域函数（默认按线程）
            config: DatabaseSettings，提供后其中的非空字段覆盖对应参数
            auto_setup_query: 是否把 CoreModel.query 绑定到新的 scoped_session

        Returns:
            (engine, session_scope)

        Raises:
            ValueError: 没有提供连接URL
        """
        params = {
            "database_url": database_url,
            "echo": echo,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
            "pool_pre_ping": pool_pre_ping,
        }
        if config is not None:
            for field, param in _CONFIG_FIELDS.items():
                value = getattr(config, field, None)
                if value is not None and value != "":
                    params[param] = value

        url = params.pop("database_url")
        if not url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")

        log = logger or _logger
        echo = params.pop("echo")

        try:
            self._engine = create_engine(url, **_engine_options(url, echo, params))
        except Exception as e:
            log.error(f"创建数据库引擎失败: {e}")
            raise

        self._session_scope = scoped_session(
            sessionmaker(autocommit=False, autoflush=False, bind=self._engine),
            scopefunc=scopefunc,
        )

        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()

        log.info(f"数据库已初始化: {self._engine.url.render_as_string(hide_password=True)}")
        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """当前作用域的会话"""
        return self.session_scope()

    def cleanup(self):
        """移除当前作用域的会话（幂等）"""
        if self._session_scope is not None:
            self._session_scope.remove()

    def dispose(self):
        """释放引擎和会话，恢复为未初始化状态"""
        self.cleanup()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_scope = None


db_manager = DatabaseManager()


def init_database(database_url: str = None, **kwargs) -> Tuple[Engine, scoped_session]:
    """db_manager.init() 的快捷方式，参数相同

    使用示例:
        from nestedset.config import AppSettings
        from nestedset.orm import init_database

        settings = AppSettings()
        init_database(config=settings.database)
    """
    return db_manager.init(database_url=database_url, **kwargs)


def get_engine() -> Engine:
    return db_manager.engine


def on_request_end():
    """请求结束时移除会话"""
    db_manager.cleanup()


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """获取会话，正常结束时提交，出错时回滚，最后移除会话

    使用示例:
        with db_session_scope():
            root = Category(title="电器").save_as_root()
            Category(title="电视").append_to(root)
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        on_request_end()
