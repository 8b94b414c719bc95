"""嵌套集合字段定义

提供嵌套集合树的标准字段定义 Mixin，简化模型定义。

使用示例:
    from nestedset.orm import CoreModel
    from nestedset.orm.tree import NestedSetFieldsMixin, NestedSetMixin

    class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
        __tablename__ = "category"

        title = mapped_column(String(100))
"""

from typing import Optional

from sqlalchemy import Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, declared_attr


class NestedSetFieldsMixin:
    """嵌套集合字段 Mixin

    提供三个结构字段和一个复合索引：
    - lft: 左边界，新节点保存前为 0
    - rgt: 右边界，新节点保存前为 0
    - parent_id: 父节点ID，根节点为空
    - 复合索引 ix_<表名>_nested_set (lft, rgt, parent_id)

    注意：
    - parent_id 不建数据库外键，子孙节点的删除顺序由树操作自行保证
    - 模型如需自定义 __table_args__，请自行合并 nested_set_index()
    """

    lft: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="左边界"
    )

    rgt: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="右边界"
    )

    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        default=None,
        index=True,
        comment="父节点ID（根节点为空）"
    )

    @classmethod
    def nested_set_index(cls, table_name: str) -> Index:
        """生成 (lft, rgt, parent_id) 复合索引"""
        return Index(f"ix_{table_name}_nested_set", "lft", "rgt", "parent_id")

    @declared_attr.directive
    def __table_args__(cls):
        return (cls.nested_set_index(cls.__tablename__),)
