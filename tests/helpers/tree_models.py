"""树测试公共模型与基类

测试模块共用同一份模型定义，避免同名表重复注册。
"""

import pytest
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker, scoped_session

from nestedset.config import reset_nested_set_settings
from nestedset.orm import Base, CoreModel, SoftDeleteMixin
from nestedset.orm.tree import NestedSetMixin, NestedSetFieldsMixin


class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
    """分类（物理删除）"""
    __tablename__ = "test_ns_category"

    title: Mapped[str] = mapped_column(String(100), default="")


class Region(NestedSetMixin, CoreModel, NestedSetFieldsMixin, SoftDeleteMixin):
    """地区（软删除）"""
    __tablename__ = "test_ns_region"

    title: Mapped[str] = mapped_column(String(100), default="")


class Menu(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
    """菜单（按站点划分作用域）"""
    __tablename__ = "test_ns_menu"
    __tree_scope__ = "site_id"

    site_id: Mapped[int] = mapped_column(Integer, default=0)
    title: Mapped[str] = mapped_column(String(100), default="")


class TreeTestBase:
    """建表并绑定 scoped_session 的测试基类"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        self.session = self.session_scope()
        yield
        self.session_scope.remove()
        reset_nested_set_settings()


def bounds_of(*nodes):
    """节点当前的 (lft, rgt) 列表"""
    return [(node.lft, node.rgt) for node in nodes]


def build_sample_tree(model=Category, **scope):
    """构建示例树

    R [1, 8]
      a [2, 5]
        g [3, 4]
      b [6, 7]
    S [9, 10]
    """
    root = model(title="R", **scope).save_as_root()
    a = model(title="a", **scope).append_to(root)
    g = model(title="g", **scope).append_to(a)
    b = model(title="b", **scope).append_to(root)
    s = model(title="S", **scope).save_as_root(commit=True)
    return root, a, g, b, s
