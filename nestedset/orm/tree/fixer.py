"""树结构修复

只信任 parent_id 邻接关系，按兄弟节点当前的 lft 顺序做深度优先编号，
重新计算整片森林（或某棵子树）的边界：

1. 读取作用域内节点的 (id, parent_id, lft, rgt)，按 parent_id 分组
2. 用显式栈做先序编号，不依赖递归深度
3. 父节点不存在（或成环）的分组作为额外的根重新编号
4. 修复子树且子树宽度变化时，先在子树根之后打开/合拢间隙
5. 只把边界或父节点确实变化的行一次性批量写回

同一份数据连续修复两次，第二次不会产生任何变更。
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from nestedset.log import get_logger

from ..orm_extensions.soft_delete_hook import INCLUDE_DELETED_OPTION
from .bounds import (
    STRUCTURE_ATTRIBUTES,
    expire_loaded_nodes,
    get_scope_fields,
    scope_criteria,
)
from .engine import make_gap

logger = get_logger("nestedset.orm.tree.fixer")

# 编号结果：id -> (lft, rgt, parent_id)
Assignment = Tuple[int, int, Any]


@dataclass
class NodeRecord:
    """修复时使用的节点记录，只保存结构字段，节点之间通过 id 关联"""
    id: Any
    parent_id: Any
    lft: int
    rgt: int

    def shift(self, cut: int, height: int):
        """按 make_gap 的规则平移存储值"""
        if self.lft >= cut:
            self.lft += height
        if self.rgt >= cut:
            self.rgt += height


def load_node_records(
    session: Session,
    cls,
    scope_values: Optional[Dict[str, Any]] = None,
    root: Optional[NodeRecord] = None,
) -> List[NodeRecord]:
    """读取作用域内（或 root 子树内）的节点记录，按 lft、id 排序，包含已软删除的行"""
    stmt = (
        select(cls.id, cls.parent_id, cls.lft, cls.rgt)
        .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .order_by(cls.lft, cls.id)
        .execution_options(**{INCLUDE_DELETED_OPTION: True})
    )
    if root is not None:
        stmt = stmt.where(cls.lft.between(root.lft + 1, root.rgt))

    return [NodeRecord(row.id, row.parent_id, row.lft, row.rgt) for row in session.execute(stmt)]


def load_root_record(session: Session, cls, node_id: Any) -> Optional[NodeRecord]:
    """读取单个节点的结构记录"""
    stmt = (
        select(cls.id, cls.parent_id, cls.lft, cls.rgt)
        .where(cls.id == node_id)
        .execution_options(**{INCLUDE_DELETED_OPTION: True})
    )
    row = session.execute(stmt).first()
    if row is None:
        return None
    return NodeRecord(row.id, row.parent_id, row.lft, row.rgt)


def group_by_parent(records: Iterable[NodeRecord]) -> "OrderedDict[Any, List[NodeRecord]]":
    """按 parent_id 分组，组内保持输入顺序"""
    groups: "OrderedDict[Any, List[NodeRecord]]" = OrderedDict()
    for record in records:
        groups.setdefault(record.parent_id, []).append(record)
    return groups


def number_children(
    groups: Dict[Any, List[NodeRecord]],
    parent_key: Any,
    cut: int,
    assigned: Dict[Any, Assignment],
) -> int:
    """从 cut 开始给 parent_key 下的整棵子树编号

    已编号的分组会从 groups 中移除。

    Returns:
        下一个可用的边界值
    """
    # 栈帧: [节点记录, 节点左边界, 子节点迭代器]
    stack = [[None, None, iter(groups.pop(parent_key, ()))]]

    while stack:
        frame = stack[-1]
        record, lft, children = frame
        child = next(children, None)

        if child is None:
            stack.pop()
            if record is not None:
                owner = stack[-1][0]
                parent_id = owner.id if owner is not None else parent_key
                assigned[record.id] = (lft, cut, parent_id)
                cut += 1
            continue

        stack.append([child, cut, iter(groups.pop(child.id, ()))])
        cut += 1

    return cut


def fix_nodes(
    session: Session,
    cls,
    groups: Dict[Any, List[NodeRecord]],
    scope_values: Optional[Dict[str, Any]] = None,
    root: Optional[NodeRecord] = None,
) -> int:
    """按分组重新编号并写回变化的行

    Args:
        session: 会话
        cls: 树模型类
        groups: parent_id -> 有序子节点记录，调用后会被清空
        scope_values: 作用域取值
        root: 子树根记录，为空时修复整个作用域

    Returns:
        变化的行数（包含间隙平移影响的行）
    """
    records = {record.id: record for children in groups.values() for record in children}

    parent_key = root.id if root is not None else None
    cut = root.lft + 1 if root is not None else 1

    assigned: Dict[Any, Assignment] = {}
    cut = number_children(groups, parent_key, cut, assigned)

    # 剩余分组的父节点不在本次编号范围内，作为额外的根
    while groups:
        orphan_key = next(iter(groups))
        orphans = groups.pop(orphan_key)
        logger.debug(f"{cls.__name__} 父节点 {orphan_key} 不存在，{len(orphans)} 个节点提升为根")
        groups[parent_key] = orphans
        cut = number_children(groups, parent_key, cut, assigned)

    moved = 0
    changes = []
    if root is not None:
        grown = cut - root.rgt
        if grown != 0:
            gap_cut = root.rgt + 1
            moved = make_gap(session, cls, gap_cut, grown, scope_values)
            for record in records.values():
                record.shift(gap_cut, grown)
            changes.append({"id": root.id, "lft": root.lft, "rgt": cut, "parent_id": root.parent_id})

    for node_id, (lft, rgt, parent_id) in assigned.items():
        record = records[node_id]
        if (record.lft, record.rgt, record.parent_id) != (lft, rgt, parent_id):
            changes.append({"id": node_id, "lft": lft, "rgt": rgt, "parent_id": parent_id})

    if changes:
        session.flush()
        session.execute(update(cls), changes)
        expire_loaded_nodes(session, cls, STRUCTURE_ATTRIBUTES)

    logger.debug(f"{cls.__name__} 修复完成，写回 {len(changes)} 行，间隙平移 {moved} 行")
    return len(changes) + moved


def fix_tree(
    session: Session,
    cls,
    scope_values: Optional[Dict[str, Any]] = None,
    root: Optional[NodeRecord] = None,
) -> int:
    """修复整个作用域，或 root 所在的子树"""
    records = load_node_records(session, cls, scope_values, root)
    return fix_nodes(session, cls, group_by_parent(records), scope_values, root)
