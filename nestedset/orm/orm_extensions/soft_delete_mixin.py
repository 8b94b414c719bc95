"""软删除Mixin"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .soft_delete_hook import activate_soft_delete_hook


class SoftDeleteMixin:
    """软删除Mixin

    功能：
    - 添加 deleted_at 字段（为空表示未删除）
    - 查询时自动过滤已删除记录（导入本模块即激活钩子）
    - 提供 soft_delete() 和 undelete() 方法

    使用示例:
        class Category(CoreModel, SoftDeleteMixin):
            __tablename__ = "category"

        category.soft_delete()
        category.save(commit=True)

        # 包含已删除记录
        Category.query.execution_options(include_deleted=True).all()

    树模型混入本类后，NestedSetMixin 的 delete() 默认执行软删除，
    并提供 restore() 恢复节点及其同批删除的子孙节点。
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        default=None,
        index=True,
        comment="删除时间（软删除标记）"
    )

    @property
    def is_deleted(self) -> bool:
        """是否已软删除"""
        return self.deleted_at is not None

    def soft_delete(self, deleted_at: datetime = None):
        """标记为已删除（不提交）"""
        self.deleted_at = deleted_at or datetime.now()

    def undelete(self):
        """取消删除标记（不提交）"""
        self.deleted_at = None


activate_soft_delete_hook()
