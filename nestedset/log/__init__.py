"""日志模块

提供日志配置与获取：
- setup_logger / setup_root_logger / setup_sql_logger: 日志器配置
- get_logger: 自动推断模块名的日志器获取函数

使用示例:
    from nestedset.log import setup_root_logger, get_logger

    setup_root_logger(level="DEBUG")

    logger = get_logger()
    logger.debug("树结构已修复")
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    setup_sql_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    SQL_LOG_FORMAT,
    orm_logger,
    tree_logger,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "setup_sql_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "SQL_LOG_FORMAT",
    "orm_logger",
    "tree_logger",
    "logger",
    "get_logger",
]
