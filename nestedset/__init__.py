"""
nestedset - 基于 SQLAlchemy 的嵌套集合树

提供树模型 Mixin、结构修复/重建/检查、配置、日志和异常
"""

from .version import __version__, __author__, __description__

from .orm import (
    Base,
    CoreModel,
    init_database,
    get_engine,
    db_session_scope,
    atomic,
    SoftDeleteMixin,
)

from .orm.tree import (
    NestedSetMixin,
    NestedSetFieldsMixin,
    Raw,
    Root,
    AppendOrPrepend,
    BeforeOrAfter,
    NodeBounds,
    TreeErrorReport,
)

from .config import (
    AppSettings,
    NestedSetSettings,
    configure_nested_set,
    get_nested_set_settings,
    load_yaml_config,
)

from .exceptions import (
    NestedSetError,
    NodeNotFoundError,
    InvalidOperationError,
    ScopeMismatchError,
    StructuralViolationError,
)

from .log import get_logger, setup_root_logger

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    # ORM
    "Base",
    "CoreModel",
    "init_database",
    "get_engine",
    "db_session_scope",
    "atomic",
    "SoftDeleteMixin",
    # 树
    "NestedSetMixin",
    "NestedSetFieldsMixin",
    "Raw",
    "Root",
    "AppendOrPrepend",
    "BeforeOrAfter",
    "NodeBounds",
    "TreeErrorReport",
    # 配置
    "AppSettings",
    "NestedSetSettings",
    "configure_nested_set",
    "get_nested_set_settings",
    "load_yaml_config",
    # 异常
    "NestedSetError",
    "NodeNotFoundError",
    "InvalidOperationError",
    "ScopeMismatchError",
    "StructuralViolationError",
    # 日志
    "get_logger",
    "setup_root_logger",
]
