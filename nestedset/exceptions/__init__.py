"""异常处理模块

提供树操作的异常类。

使用示例:
    from nestedset.exceptions import NestedSetError, NodeNotFoundError

    try:
        Category.rebuild_tree(payload)
    except NodeNotFoundError as e:
        print(e.node_id)
"""

from .exceptions import (
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    NestedSetError,
    NodeNotFoundError,
    InvalidOperationError,
    ScopeMismatchError,
    StructuralViolationError,
)

__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "NestedSetError",
    "NodeNotFoundError",
    "InvalidOperationError",
    "ScopeMismatchError",
    "StructuralViolationError",
]
