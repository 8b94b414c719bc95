"""树结构一致性检查

对一个作用域执行四项只读检查（一条 SELECT，四个标量子查询）：

- oddness: lft >= rgt 或 rgt - lft 为偶数
- duplicates: 两个不同节点共用了某个边界值
- wrong_parent: 父节点的区间没有紧包住子节点（不包含它，或中间还夹着别的节点）
- missing_parent: parent_id 指向作用域内不存在的节点

已软删除的行同样参与检查，它们仍然占用边界值。
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, computed_field
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import Session, aliased

from ..orm_extensions.soft_delete_hook import INCLUDE_DELETED_OPTION
from .bounds import get_scope_fields, scope_criteria


class TreeErrorReport(BaseModel):
    """一致性检查报告"""
    oddness: int = 0
    duplicates: int = 0
    wrong_parent: int = 0
    missing_parent: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.oddness + self.duplicates + self.wrong_parent + self.missing_parent

    @property
    def is_broken(self) -> bool:
        return self.total > 0

    def counters(self) -> Dict[str, int]:
        """四项计数"""
        return {
            "oddness": self.oddness,
            "duplicates": self.duplicates,
            "wrong_parent": self.wrong_parent,
            "missing_parent": self.missing_parent,
        }


def _scoped(entity, cls, scope_values):
    return scope_criteria(entity, get_scope_fields(cls), scope_values)


def _oddness_query(cls, scope_values):
    node = aliased(cls, name="o")
    return (
        select(func.count())
        .select_from(node)
        .where(or_(node.lft >= node.rgt, (node.rgt - node.lft) % 2 == 0))
        .where(*_scoped(node, cls, scope_values))
    )


def _duplicates_query(cls, scope_values):
    c1 = aliased(cls, name="c1")
    c2 = aliased(cls, name="c2")
    return (
        select(func.count())
        .select_from(c1)
        .join(c2, and_(
            c1.id < c2.id,
            or_(
                c1.lft == c2.lft,
                c1.rgt == c2.rgt,
                c1.lft == c2.rgt,
                c1.rgt == c2.lft,
            ),
        ))
        .where(*_scoped(c1, cls, scope_values))
        .where(*_scoped(c2, cls, scope_values))
    )


def _wrong_parent_query(cls, scope_values):
    child = aliased(cls, name="c")
    parent = aliased(cls, name="p")
    between = aliased(cls, name="m")
    # 父子之间还夹着一个节点
    intermediate = (
        select(between.id)
        .where(between.id != parent.id, between.id != child.id)
        .where(child.lft.between(between.lft, between.rgt))
        .where(between.lft.between(parent.lft, parent.rgt))
        .where(*_scoped(between, cls, scope_values))
    )
    return (
        select(func.count(func.distinct(child.id)))
        .select_from(child)
        .join(parent, child.parent_id == parent.id)
        .where(or_(
            ~child.lft.between(parent.lft, parent.rgt),
            exists(intermediate),
        ))
        .where(*_scoped(child, cls, scope_values))
        .where(*_scoped(parent, cls, scope_values))
    )


def _missing_parent_query(cls, scope_values):
    child = aliased(cls, name="c")
    parent = aliased(cls, name="p")
    parent_exists = (
        select(parent.id)
        .where(parent.id == child.parent_id)
        .where(*_scoped(parent, cls, scope_values))
    )
    return (
        select(func.count())
        .select_from(child)
        .where(child.parent_id.is_not(None))
        .where(~exists(parent_exists))
        .where(*_scoped(child, cls, scope_values))
    )


CHECKS = {
    "oddness": _oddness_query,
    "duplicates": _duplicates_query,
    "wrong_parent": _wrong_parent_query,
    "missing_parent": _missing_parent_query,
}


def count_errors(
    session: Session,
    cls,
    scope_values: Optional[Dict[str, Any]] = None,
) -> TreeErrorReport:
    """统计作用域内的结构错误"""
    stmt = select(*[
        build(cls, scope_values).scalar_subquery().label(name)
        for name, build in CHECKS.items()
    ]).execution_options(**{INCLUDE_DELETED_OPTION: True})

    row = session.execute(stmt).one()
    return TreeErrorReport(**{name: getattr(row, name) or 0 for name in CHECKS})
