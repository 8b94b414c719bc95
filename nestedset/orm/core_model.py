"""
树模型的公共基类

CoreModel 负责与树结构无关的部分：表名、时间戳、会话获取、
单条记录的保存/删除/读取以及按条件的批量写。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, delete, func, update, inspect
from sqlalchemy.orm import Mapped, mapped_column, declared_attr, Session, Query

if TYPE_CHECKING:
    from typing_extensions import Self

from .id_model import IdModel, Base
from .utils import to_snake_case


def _resolve_session(model_cls) -> Session:
    """优先使用模型绑定的 query_property，未绑定时退回全局 scoped_session"""
    query = getattr(model_cls, "query", None)
    if query is not None:
        return query.session

    from .db_session import db_manager
    return db_manager.get_session()


class CoreModel(IdModel):
    """树模型公共基类

    - 表名由类名转换而来（CategoryNode -> category_node），也可以显式声明 __tablename__
    - created_at / updated_at 由数据库维护，构造参数中传入会被忽略
    - query 类属性由 init_database() 设置为 scoped_session.query_property()

    使用示例:
        class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
            title: Mapped[str] = mapped_column(String(100), default="")

        Category.get(1)
        Category.bulk_update({"title": "旧名称"}, {"title": "新名称"}, commit=True)
    """
    __abstract__ = True

    # _session 不是映射列
    __allow_unmapped__ = True

    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]

    _session: Session = None

    # 由数据库维护，构造时丢弃
    _system_fields: ClassVar[frozenset] = frozenset({"id", "created_at", "updated_at"})

    @declared_attr.directive
    def __tablename__(cls) -> str:
        if "_" in cls.__name__:
            raise ValueError(f"类名 {cls.__name__} 含下划线，请显式声明 __tablename__")
        return to_snake_case(cls.__name__)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        onupdate=func.now(),
        comment="更新时间"
    )

    def __init__(self, **kwargs):
        super().__init__(**{
            key: value for key, value in kwargs.items()
            if key not in self._system_fields
        })

    def __repr__(self):
        return f"<{type(self).__name__} id={self.id}>"

    @property
    def session(self) -> Session:
        """实例使用的会话，首次访问时确定"""
        if self._session is None:
            self._session = _resolve_session(type(self))
        return self._session

    @classmethod
    def _finish(cls, session: Session, commit: bool):
        if commit:
            session.commit()

    # ==================== 单条记录 ====================

    def save(self, commit: bool = False) -> Self:
        """加入会话，commit=True 时立即提交"""
        self.session.add(self)
        self._finish(self.session, commit)
        return self

    def delete(self, commit: bool = False):
        self.session.delete(self)
        self._finish(self.session, commit)

    def refresh(self, attribute_names: Optional[List[str]] = None) -> Self:
        """从数据库重新加载（可只刷新部分属性）"""
        self.session.refresh(self, attribute_names or None)
        return self

    @classmethod
    def get(cls, id: Any) -> Optional[Self]:
        return cls.query.filter(cls.id == id).first()

    @classmethod
    def get_all(cls) -> List[Self]:
        return cls.query.all()

    def to_dict(self, exclude: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """映射列转字典（包含 lft/rgt/parent_id 等结构列）"""
        skipped = set(exclude or ())
        return {
            attr.key: getattr(self, attr.key)
            for attr in inspect(type(self)).column_attrs
            if attr.key not in skipped
        }

    # ==================== 批量写 ====================

    @classmethod
    def bulk_update(cls, filters: Dict[str, Any], values: Dict[str, Any], commit: bool = False) -> int:
        """按等值条件批量更新，不存在的字段名会被忽略

        Returns:
            受影响的行数
        """
        criteria = [
            getattr(cls, key) == value
            for key, value in filters.items()
            if hasattr(cls, key)
        ]
        session = _resolve_session(cls)
        rowcount = session.execute(update(cls).where(*criteria).values(**values)).rowcount
        cls._finish(session, commit)
        return rowcount

    @classmethod
    def bulk_delete_by_ids(cls, ids: List[Any], commit: bool = False) -> int:
        """按主键批量物理删除，不调整树边界（树节点请使用 delete()）"""
        if not ids:
            return 0

        session = _resolve_session(cls)
        stmt = (
            delete(cls)
            .where(cls.id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        rowcount = session.execute(stmt).rowcount
        cls._finish(session, commit)
        return rowcount


__all__ = ["Base", "CoreModel"]
