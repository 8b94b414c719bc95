"""从层级载荷重建树

载荷格式（字段名可在 NestedSetSettings 中配置）::

    [
        {"id": 1, "title": "电器", "children": [
            {"title": "电视"},            # 无 id：新建
            {"id": 5, "title": "冰箱"},   # 有 id：更新已有节点，找不到则整体失败
        ]},
    ]

处理分两阶段：先按载荷写入属性和 parent_id（边界暂时为 0，不做校验），
再把完整的邻接关系交给修复器统一编号。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete as sql_delete, inspect
from sqlalchemy.orm import Session

from nestedset.log import get_logger

from ...config import get_nested_set_settings
from ...exceptions import NodeNotFoundError
from ..orm_extensions.soft_delete_hook import INCLUDE_DELETED_OPTION
from .bounds import STRUCTURE_ATTRIBUTES, get_scope_fields, scope_criteria
from .fixer import NodeRecord, fix_nodes, group_by_parent
from .intents import Raw

logger = get_logger("nestedset.orm.tree.rebuilder")

# 载荷中不会被写入的字段
PROTECTED_ATTRIBUTES = {"id", "created_at", "updated_at", "deleted_at", *STRUCTURE_ATTRIBUTES}


def fillable_attributes(cls) -> set:
    """载荷可以写入的列属性"""
    return {
        attr.key for attr in inspect(cls).column_attrs
    } - PROTECTED_ATTRIBUTES - set(get_scope_fields(cls))


def load_existing_nodes(
    session: Session,
    cls,
    scope_values: Optional[Dict[str, Any]] = None,
    root: Optional[NodeRecord] = None,
) -> Dict[Any, Any]:
    """读取作用域内（或 root 子树内）的已有节点，包含已软删除的行"""
    query = (
        session.query(cls)
        .filter(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .execution_options(**{INCLUDE_DELETED_OPTION: True})
        .order_by(cls.lft, cls.id)
    )
    if root is not None:
        query = query.filter(cls.lft.between(root.lft + 1, root.rgt))
    return {node.id: node for node in query}


def rebuild_tree(
    session: Session,
    cls,
    data: List[Dict[str, Any]],
    delete: bool = False,
    scope_values: Optional[Dict[str, Any]] = None,
    root: Optional[NodeRecord] = None,
) -> int:
    """按载荷重建作用域（或 root 子树）

    Args:
        session: 会话
        cls: 树模型类
        data: 层级载荷
        delete: 是否删除载荷中未出现的已有节点（支持软删除的模型执行软删除）
        scope_values: 作用域取值，新建节点会带上这些值
        root: 子树根记录，为空时重建整个作用域

    Returns:
        修复器写回的行数

    Raises:
        NodeNotFoundError: 载荷中的节点标识在作用域内不存在
    """
    settings = get_nested_set_settings()
    id_key = settings.payload_id_key
    children_key = settings.payload_children_key
    fillable = fillable_attributes(cls)

    existing = load_existing_nodes(session, cls, scope_values, root)
    parent_key = root.id if root is not None else None

    records: List[NodeRecord] = []
    created = 0

    # 先序遍历，保持兄弟节点的载荷顺序
    stack = [(parent_key, item) for item in reversed(data)]
    while stack:
        parent_id, item = stack.pop()
        node_id = item.get(id_key)

        if node_id is None:
            node = cls()
            for field, value in (scope_values or {}).items():
                setattr(node, field, value)
            node.apply_intent(Raw(0, 0, parent_id))
            session.add(node)
            created += 1
        else:
            node = existing.pop(node_id, None)
            if node is None:
                raise NodeNotFoundError(
                    f"重建载荷中的节点不存在: {node_id}",
                    node_id=node_id,
                )
            node.parent_id = parent_id

        for key, value in item.items():
            if key in fillable:
                setattr(node, key, value)

        # 子节点需要父节点的 id
        session.flush()
        records.append(NodeRecord(node.id, parent_id, node.lft, node.rgt))

        for child in reversed(item.get(children_key) or []):
            stack.append((node.id, child))

    matched = len(records) - created
    leftovers = sorted(existing.values(), key=lambda n: (n.lft, n.id))
    if leftovers:
        if delete and not cls._nested_set_soft_delete:
            stmt = (
                sql_delete(cls)
                .where(cls.id.in_([node.id for node in leftovers]))
                .execution_options(synchronize_session="fetch")
            )
            session.execute(stmt)
            logger.debug(f"{cls.__name__} 重建时删除 {len(leftovers)} 个未引用节点")
        else:
            deleted_at = datetime.now()
            for node in leftovers:
                if delete and node.deleted_at is None:
                    node.deleted_at = deleted_at
                records.append(NodeRecord(node.id, node.parent_id, node.lft, node.rgt))
            session.flush()

    logger.debug(f"{cls.__name__} 重建载荷处理完成，新建 {created} 个，更新 {matched} 个")
    return fix_nodes(session, cls, group_by_parent(records), scope_values, root)
