"""ORM 扩展

- SoftDeleteMixin: 软删除字段与查询过滤
- activate_soft_delete_hook: 注册软删除查询钩子
"""

from .soft_delete_hook import activate_soft_delete_hook, INCLUDE_DELETED_OPTION
from .soft_delete_mixin import SoftDeleteMixin

__all__ = [
    "SoftDeleteMixin",
    "activate_soft_delete_hook",
    "INCLUDE_DELETED_OPTION",
]
