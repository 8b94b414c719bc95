"""
日志配置

树操作的日志分三类：
- nestedset.orm.tree.*: 结构写操作（DEBUG）、修复/重建汇总（INFO）
- nestedset.orm.transaction: 回滚（WARNING）
- sqlalchemy.engine: 生成的 SQL，默认关闭，可单独写文件

使用示例:
    from nestedset.log import setup_root_logger, get_logger

    setup_root_logger(level="DEBUG")
    logger = get_logger()
"""

import inspect
import logging
import os
import time
from typing import Any, List, Optional


DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"

SQL_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

ROOT_NAME = "nestedset"


class MicrosecondFormatter(logging.Formatter):
    """时间戳精确到微秒：2024-01-01 12:00:00.123456"""

    def formatTime(self, record, datefmt=None):
        seconds = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", self.converter(record.created))
        micros = int((record.created - int(record.created)) * 1_000_000)
        return f"{seconds}.{micros:06d}"


def create_formatter(
    log_format: str = None,
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    use_microseconds: bool = True
) -> logging.Formatter:
    formatter_cls = MicrosecondFormatter if use_microseconds else logging.Formatter
    return formatter_cls(fmt=log_format or DEFAULT_LOG_FORMAT, datefmt=datefmt)


def _build_handlers(console: bool, log_file: Optional[str], encoding: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding=encoding))
    return handlers


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    propagate: bool = True,
    encoding: str = "utf-8"
) -> logging.Logger:
    """配置一个日志器，已有的处理器会被替换

    Args:
        name: 日志器名称，为空时配置根日志器
        level: DEBUG / INFO / WARNING / ERROR / CRITICAL，大小写不敏感
        log_file: 日志文件路径，目录不存在时自动创建
        log_format: 格式字符串，默认 DEFAULT_LOG_FORMAT
        console: 是否输出到标准错误
        use_microseconds: 时间戳是否带微秒
        propagate: 是否继续传给上级日志器
        encoding: 日志文件编码

    使用示例:
        setup_logger("nestedset.orm.tree", level="DEBUG", log_file="logs/tree.log")
    """
    target = logging.getLogger(name)
    target.setLevel(getattr(logging, level.upper(), logging.INFO))
    target.propagate = propagate

    for handler in list(target.handlers):
        target.removeHandler(handler)
        handler.close()

    formatter = create_formatter(log_format, use_microseconds=use_microseconds)
    for handler in _build_handlers(console, log_file, encoding):
        handler.setFormatter(formatter)
        target.addHandler(handler)

    return target


def setup_sql_logger(
    level: str = "DEBUG",
    log_file: str = None,
    console: bool = False,
    config: Any = None
) -> Optional[logging.Logger]:
    """配置 sqlalchemy.engine 日志器，用于查看间隙/移动生成的 UPDATE 语句

    提供 config（LoggingSettings）时读取 sql_log_* 字段；
    config.sql_log_enabled 为 False 时不做任何配置并返回 None。
    """
    if config is not None:
        if not getattr(config, "sql_log_enabled", True):
            return None
        level = getattr(config, "sql_log_level", level)
        log_file = getattr(config, "sql_log_file_path", None) or log_file

    return setup_logger(
        name="sqlalchemy.engine",
        level=level,
        log_file=log_file,
        log_format=SQL_LOG_FORMAT,
        console=console,
        propagate=False,
    )


def _load_logging_settings(config_path: str, base_dir: str = None):
    from ..config import ConfigLoader, LoggingSettings

    data = ConfigLoader.load(config_path, base_dir=base_dir)
    return LoggingSettings(**(data.get("logging") or {}))


def setup_root_logger(
    level: str = "INFO",
    log_file: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    config: Any = None,
    config_path: str = None,
    config_base_dir: str = None,
    setup_sql: bool = True
) -> logging.Logger:
    """配置根日志器

    三种用法，优先级 config_path > config > 直接参数:
        setup_root_logger(level="DEBUG", log_file="logs/tree.log")
        setup_root_logger(config=settings.logging)
        setup_root_logger(config_path="config/settings.yaml")

    配置中 sql_log_enabled 为 True 且 setup_sql 为 True 时同时配置 SQL 日志器。
    """
    if config_path is not None:
        config = _load_logging_settings(config_path, config_base_dir)

    encoding = "utf-8"
    if config is not None:
        level = config.level
        log_file = config.file_path or None
        console = config.enable_console
        encoding = config.file_encoding
        if setup_sql and config.sql_log_enabled:
            setup_sql_logger(config=config)

    return setup_logger(
        level=level,
        log_file=log_file,
        console=console,
        use_microseconds=use_microseconds,
        propagate=False,
        encoding=encoding,
    )


def get_logger(name: str = None) -> logging.Logger:
    """获取日志器

    - 不传 name: 使用调用方模块的 __name__
    - 不含点号的简写: 加上 nestedset. 前缀（"orm" -> "nestedset.orm"）
    - 其它名称原样使用

    使用示例:
        logger = get_logger()                     # nestedset.orm.tree.engine 中调用 -> "nestedset.orm.tree.engine"
        logger = get_logger("fixer")              # -> "nestedset.fixer"
        logger = get_logger("sqlalchemy.engine")  # -> "sqlalchemy.engine"
    """
    if name is None:
        caller = inspect.currentframe().f_back
        name = caller.f_globals.get("__name__", ROOT_NAME) if caller is not None else ROOT_NAME
    elif name != ROOT_NAME and "." not in name:
        name = f"{ROOT_NAME}.{name}"

    return logging.getLogger(name)


orm_logger = get_logger("orm")
tree_logger = get_logger("nestedset.orm.tree")

logger = logging.getLogger(ROOT_NAME)
