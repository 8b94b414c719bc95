"""ID模型基类

提供声明式基类和自增整数主键。

使用说明：
    IdModel 是 CoreModel 的父类，只负责主键。
    一般情况下应使用 CoreModel，而不是直接使用 IdModel。
"""
from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import declarative_base, Mapped, mapped_column

try:
    from typing import dataclass_transform  # Python 3.11+
except ImportError:
    from typing_extensions import dataclass_transform  # Python 3.10 及以下


# 声明基类
Base = declarative_base()


@dataclass_transform(kw_only_default=True, field_specifiers=(mapped_column,))
class IdModel(Base):
    """ID模型基类

    使用示例:
        class Menu(IdModel):
            __tablename__ = "menu"
            title = mapped_column(String(50))
    """
    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
