"""ORM模块

- CoreModel: 核心模型基类，包含ID、时间戳、CRUD、批量操作
- 数据库会话管理
- 事务辅助
- 软删除扩展
- 嵌套集合树扩展

使用示例:
    from nestedset.orm import CoreModel, init_database, SoftDeleteMixin
    from nestedset.orm.tree import NestedSetMixin, NestedSetFieldsMixin

    init_database("sqlite:///./tree.db")

    class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin, SoftDeleteMixin):
        __tablename__ = "category"
        title: Mapped[str] = mapped_column(String(100), default="")
"""

from .id_model import IdModel, Base
from .core_model import CoreModel
from .db_session import (
    db_manager,
    init_database,
    get_engine,
    on_request_end,
    db_session_scope,
)
from .transaction import atomic
from .orm_extensions import (
    SoftDeleteMixin,
    activate_soft_delete_hook,
    INCLUDE_DELETED_OPTION,
)

__all__ = [
    "Base",
    "IdModel",
    "CoreModel",
    # 会话管理
    "db_manager",
    "init_database",
    "get_engine",
    "on_request_end",
    "db_session_scope",
    "atomic",
    # 软删除
    "SoftDeleteMixin",
    "activate_soft_delete_hook",
    "INCLUDE_DELETED_OPTION",
]
