"""嵌套集合查询条件构造

所有函数返回 SQLAlchemy 条件表达式，可直接用于 Query.filter() / select().where()，
也可以用 and_() / or_() 组合。target 参数既可以是节点实例（使用其当前边界），
也可以是节点ID（从数据库读取边界，不存在时抛出 NodeNotFoundError）。

使用示例:
    from sqlalchemy import and_
    from nestedset.orm.tree import predicates as p

    # 某节点的全部祖先（按层级排序）
    Category.query.filter(p.where_ancestor_of(Category, node)).order_by(p.tree_order(Category))

    # 某节点下的所有叶子
    Category.query.filter(and_(p.where_descendant_of(Category, node), p.where_is_leaf(Category)))

    # 带深度
    Category.query.add_columns(p.depth_column(Category)).all()
"""

from typing import Any, Tuple

from sqlalchemy import and_, func, literal, not_ as negate, select, true
from sqlalchemy.orm import aliased

from .bounds import NodeBounds, get_scope_fields, get_scope_values, load_node_bounds


def resolve_target(cls, target: Any) -> Tuple[Any, NodeBounds]:
    """把节点实例或节点ID解析为 (id, 边界)"""
    if isinstance(target, cls):
        return target.id, NodeBounds(target.lft, target.rgt)
    bounds = load_node_bounds(cls.query.session, cls, target)
    return target, bounds


def where_node_between(cls, lft: int, rgt: int):
    """左边界位于 [lft, rgt] 之间"""
    return cls.lft.between(lft, rgt)


def where_ancestor_of(cls, target: Any, and_self: bool = False):
    """target 的祖先节点（区间包含 target 的右边界）"""
    node_id, bounds = resolve_target(cls, target)
    condition = literal(bounds.rgt).between(cls.lft, cls.rgt)
    if not and_self:
        condition = and_(condition, cls.id != node_id)
    return condition


def where_descendant_of(cls, target: Any, and_self: bool = False, not_: bool = False):
    """target 的子孙节点

    Args:
        and_self: 是否包含 target 自身
        not_: 取反，返回不在 target 子树中的节点
    """
    _, bounds = resolve_target(cls, target)
    lft = bounds.lft if and_self else bounds.lft + 1
    condition = where_node_between(cls, lft, bounds.rgt)
    if not_:
        return negate(condition)
    return condition


def where_not_descendant_of(cls, target: Any, and_self: bool = False):
    """不在 target 子树中的节点"""
    return where_descendant_of(cls, target, and_self=and_self, not_=True)


def where_is_before(cls, target: Any):
    """位于 target 之前的节点（左边界更小）"""
    _, bounds = resolve_target(cls, target)
    return cls.lft < bounds.lft


def where_is_after(cls, target: Any):
    """位于 target 之后的节点（左边界更大）"""
    _, bounds = resolve_target(cls, target)
    return cls.lft > bounds.lft


def where_is_leaf(cls):
    """叶子节点"""
    return cls.lft == cls.rgt - 1


def where_is_root(cls):
    """根节点"""
    return cls.parent_id.is_(None)


def where_sibling_of(cls, node, and_self: bool = False):
    """与 node 同父的节点"""
    if node.parent_id is None:
        condition = cls.parent_id.is_(None)
    else:
        condition = cls.parent_id == node.parent_id
    if not and_self:
        condition = and_(condition, cls.id != node.id)
    return condition


def where_same_scope(cls, node):
    """与 node 同作用域"""
    values = get_scope_values(node)
    if not values:
        return true()
    return and_(*[getattr(cls, field) == value for field, value in values.items()])


def depth_column(cls, alias: str = "depth"):
    """节点深度列（根节点为 0）

    关联子查询统计包含当前节点左边界的同作用域节点数，减去自身。
    """
    ancestor = aliased(cls, name="_d")
    criteria = [cls.lft.between(ancestor.lft, ancestor.rgt)]
    criteria.extend(
        getattr(ancestor, field) == getattr(cls, field)
        for field in get_scope_fields(cls)
    )
    return (
        select(func.count() - 1)
        .select_from(ancestor)
        .where(*criteria)
        .correlate_except(ancestor)
        .scalar_subquery()
        .label(alias)
    )


def tree_order(cls, reverse: bool = False):
    """按左边界排序，即树的先序遍历顺序"""
    return cls.lft.desc() if reverse else cls.lft.asc()
