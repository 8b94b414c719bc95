"""节点边界与作用域访问

嵌套集合的所有跨节点操作都在同一个作用域（一组等值条件划分出的森林）内进行。
本模块负责：
- 读取节点当前存储的边界（包含已软删除的行）
- 作用域字段的解析、取值和过滤条件构造
- 批量语句执行后使会话中已加载对象的边界失效
"""

from math import ceil
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ...config import get_nested_set_settings
from ...exceptions import InvalidOperationError, NodeNotFoundError
from ..orm_extensions.soft_delete_hook import INCLUDE_DELETED_OPTION

# 树结构字段
BOUND_ATTRIBUTES = ("lft", "rgt")
STRUCTURE_ATTRIBUTES = ("lft", "rgt", "parent_id")


class NodeBounds(NamedTuple):
    """节点边界 (lft, rgt)"""
    lft: int
    rgt: int

    @property
    def height(self) -> int:
        """子树占用的边界跨度 rgt - lft + 1"""
        return self.rgt - self.lft + 1

    @property
    def is_valid(self) -> bool:
        return bool(self.lft) and bool(self.rgt) and self.lft < self.rgt

    @property
    def descendant_count(self) -> int:
        return ceil(self.height / 2) - 1

    def contains(self, other: "NodeBounds") -> bool:
        """other 是否严格位于本区间内"""
        return self.lft < other.lft and other.rgt < self.rgt


def get_scope_fields(cls) -> List[str]:
    """获取模型的作用域字段列表

    __tree_scope__ 可以是字符串或字符串列表，未设置表示全局只有一片森林。
    """
    scope = getattr(cls, "__tree_scope__", None)
    if not scope:
        return []
    if isinstance(scope, str):
        return [scope]
    return list(scope)


def get_scope_values(node) -> Dict[str, Any]:
    """读取节点的作用域取值"""
    return {field: getattr(node, field) for field in get_scope_fields(type(node))}


def scope_criteria(entity, fields: Sequence[str], values: Optional[Dict[str, Any]]) -> list:
    """构造作用域等值条件

    Args:
        entity: 模型类或 aliased 实体
        fields: 作用域字段
        values: 作用域取值，为空时不加条件
    """
    if not values:
        return []
    return [getattr(entity, field) == values[field] for field in fields if field in values]


def require_scope_values(cls, values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """校验类级操作提供了全部作用域字段

    Raises:
        InvalidOperationError: 缺少作用域字段
    """
    values = dict(values or {})
    fields = get_scope_fields(cls)
    missing = [field for field in fields if field not in values]
    if missing:
        raise InvalidOperationError(
            f"{cls.__name__} 按 {fields} 划分作用域，缺少作用域参数: {missing}",
            missing=missing,
        )
    unknown = [key for key in values if key not in fields]
    if unknown:
        raise InvalidOperationError(
            f"{cls.__name__} 不存在作用域字段: {unknown}",
            unknown=unknown,
        )
    return values


def is_same_scope(node, other) -> bool:
    """两个节点是否在同一作用域"""
    return all(
        getattr(node, field) == getattr(other, field)
        for field in get_scope_fields(type(node))
    )


def load_node_bounds(
    session: Session,
    cls,
    node_id: Any,
    scope_values: Optional[Dict[str, Any]] = None,
    required: bool = True,
) -> Optional[NodeBounds]:
    """从数据库读取节点当前边界（包含已软删除的行）

    Args:
        session: 会话
        cls: 树模型类
        node_id: 节点ID
        scope_values: 作用域取值
        required: 节点不存在时是否抛出异常

    Raises:
        NodeNotFoundError: 节点不存在且 required 为 True
    """
    stmt = (
        select(cls.lft, cls.rgt)
        .where(cls.id == node_id)
        .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .execution_options(**{INCLUDE_DELETED_OPTION: True})
    )
    if get_nested_set_settings().lock_for_update:
        stmt = stmt.with_for_update()

    row = session.execute(stmt).first()
    if row is None:
        if required:
            raise NodeNotFoundError(node_id=node_id)
        return None
    return NodeBounds(row.lft, row.rgt)


def load_max_rgt(session: Session, cls, scope_values: Optional[Dict[str, Any]] = None) -> int:
    """作用域内最大的右边界，空树返回 0（包含已软删除的行）"""
    stmt = (
        select(func.max(cls.rgt))
        .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .execution_options(**{INCLUDE_DELETED_OPTION: True})
    )
    return session.execute(stmt).scalar() or 0


def expire_loaded_nodes(session: Session, cls, attributes: Iterable[str] = BOUND_ATTRIBUTES):
    """使会话中已加载的同类对象的指定属性过期

    批量 UPDATE 不会同步身份映射中的对象，访问过期属性时会重新从数据库加载。
    """
    attributes = list(attributes)
    for obj in list(session.identity_map.values()):
        if isinstance(obj, cls):
            session.expire(obj, attributes)
