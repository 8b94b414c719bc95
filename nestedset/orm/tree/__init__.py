"""嵌套集合树模块

用 lft/rgt 区间编码树形结构：祖先、子孙、兄弟、深度查询都是单条范围条件，
结构变更（插入、移动、删除）是一条批量 UPDATE。

主要组件:
- NestedSetMixin: 树操作方法 Mixin
- NestedSetFieldsMixin: lft/rgt/parent_id 字段和复合索引
- 插入意图: Raw / Root / AppendOrPrepend / BeforeOrAfter
- predicates: 可组合的查询条件
- engine: 间隙管理与节点移动
- fixer / rebuilder / checker: 修复、重建、一致性检查
- 工具函数: 字典树处理

使用示例:
    from nestedset.orm import CoreModel
    from nestedset.orm.tree import NestedSetMixin, NestedSetFieldsMixin

    class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
        __tablename__ = "category"
        title: Mapped[str] = mapped_column(String(100), default="")

    root = Category(title="电器").save_as_root(commit=True)
    Category(title="电视").append_to(root, commit=True)

    Category.count_errors()     # TreeErrorReport(oddness=0, ...)
    Category.fix_tree(commit=True)
"""

from .tree_fields import NestedSetFieldsMixin
from .nested_set_mixin import NestedSetMixin
from .intents import (
    Raw,
    Root,
    AppendOrPrepend,
    BeforeOrAfter,
    NodeIntent,
)
from .bounds import (
    NodeBounds,
    get_scope_fields,
    get_scope_values,
    require_scope_values,
    is_same_scope,
)
from .engine import make_gap, move_node
from .fixer import NodeRecord, fix_tree
from .rebuilder import rebuild_tree
from .checker import TreeErrorReport, count_errors
from .tree_utils import (
    build_tree_list,
    flatten_tree,
    find_node_in_tree,
)
from . import predicates

__all__ = [
    # Mixin 类
    "NestedSetMixin",
    "NestedSetFieldsMixin",
    # 插入意图
    "Raw",
    "Root",
    "AppendOrPrepend",
    "BeforeOrAfter",
    "NodeIntent",
    # 边界与作用域
    "NodeBounds",
    "get_scope_fields",
    "get_scope_values",
    "require_scope_values",
    "is_same_scope",
    # 结构引擎
    "make_gap",
    "move_node",
    "NodeRecord",
    "fix_tree",
    "rebuild_tree",
    "TreeErrorReport",
    "count_errors",
    "predicates",
    # 工具函数
    "build_tree_list",
    "flatten_tree",
    "find_node_in_tree",
]
