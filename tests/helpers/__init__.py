"""测试辅助模块"""

from .tree_models import (
    Category,
    Region,
    Menu,
    TreeTestBase,
    bounds_of,
    build_sample_tree,
)

__all__ = [
    "Category",
    "Region",
    "Menu",
    "TreeTestBase",
    "bounds_of",
    "build_sample_tree",
]
