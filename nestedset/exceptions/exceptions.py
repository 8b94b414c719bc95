"""树操作异常类定义

定义嵌套集合树使用的异常类体系。
"""

import copy
from enum import Enum
from typing import Optional, List, Any, Dict, Union, TYPE_CHECKING

from fastapi import status

if TYPE_CHECKING:
    from ..orm.tree.checker import TreeErrorReport


class ErrorCode(str, Enum):
    """树操作错误码

    值与名称相同，可直接和字符串比较或序列化。

    使用示例:
        try:
            node.append_to(other)
        except NestedSetError as e:
            if e.code == ErrorCode.SCOPE_MISMATCH:
                ...
    """

    BUSINESS_ERROR = "BUSINESS_ERROR"

    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    INVALID_TREE_OPERATION = "INVALID_TREE_OPERATION"
    SCOPE_MISMATCH = "SCOPE_MISMATCH"
    STRUCTURAL_VIOLATION = "STRUCTURAL_VIOLATION"


ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """带错误码和 HTTP 状态码的异常

    message 面向调用方展示；code 供程序分支判断；details 是逐条的错误说明；
    其余关键字参数收进 extra，作为排查用的上下文（节点ID、作用域取值等）。
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """序列化为可直接返回给客户端的字典"""
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            # 返回副本
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )


class NestedSetError(BusinessException):
    """嵌套集合树异常基类

    所有树操作异常都继承此类，便于调用方统一捕获。
    """


class NodeNotFoundError(NestedSetError):
    """节点不存在

    引用的锚点、父节点或重建载荷中的节点标识在当前作用域内找不到对应记录。

    使用示例:
        raise NodeNotFoundError(node_id=42)
    """

    def __init__(
        self,
        message: str = None,
        node_id: Any = None,
        code: ErrorCodeType = ErrorCode.NODE_NOT_FOUND,
        **extra: Any
    ):
        self.node_id = node_id
        if message is None:
            message = f"节点不存在: {node_id}"
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_404_NOT_FOUND,
            node_id=node_id,
            **extra
        )


class InvalidOperationError(NestedSetError):
    """非法的树结构操作

    例如把节点移动到自身子树内、挂到自身下，或以未保存的节点作为锚点。
    """

    def __init__(
        self,
        message: str = "非法的树结构操作",
        code: ErrorCodeType = ErrorCode.INVALID_TREE_OPERATION,
        **extra: Any
    ):
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_400_BAD_REQUEST,
            **extra
        )


class ScopeMismatchError(NestedSetError):
    """两个节点不在同一个作用域"""

    def __init__(
        self,
        message: str = "节点不在同一作用域内",
        expected: Optional[Dict[str, Any]] = None,
        actual: Optional[Dict[str, Any]] = None,
        code: ErrorCodeType = ErrorCode.SCOPE_MISMATCH,
        **extra: Any
    ):
        self.expected = expected or {}
        self.actual = actual or {}
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            expected=self.expected,
            actual=self.actual,
            **extra
        )


class StructuralViolationError(NestedSetError):
    """树结构不一致

    仅由一致性检查主动抛出（assert_valid_tree），正常的增删改不会抛出。
    """

    def __init__(
        self,
        report: "TreeErrorReport",
        message: str = None,
        code: ErrorCodeType = ErrorCode.STRUCTURAL_VIOLATION,
        **extra: Any
    ):
        self.report = report
        if message is None:
            message = f"树结构存在 {report.total} 处错误"
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            details=[f"{name}: {count}" for name, count in report.counters().items() if count],
            report=report.model_dump(),
            **extra
        )
