"""节点插入意图

保存节点时传入一个意图，描述节点在树中的目标位置。意图只在本次保存中被消费一次，
不会挂在节点实例上。

- Raw: 直接写入边界和父节点，不做任何校验（仅供修复/重建内部使用）
- Root: 作为新的根节点，放在当前最大右边界之后
- AppendOrPrepend: 作为 parent 的最后一个（或第一个）子节点
- BeforeOrAfter: 放在 anchor 之前（或之后），成为其兄弟节点
"""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Raw:
    lft: int
    rgt: int
    parent_id: Optional[Any] = None


@dataclass(frozen=True)
class Root:
    pass


@dataclass(frozen=True)
class AppendOrPrepend:
    parent: Any
    prepend: bool = False


@dataclass(frozen=True)
class BeforeOrAfter:
    anchor: Any
    after: bool = False


NodeIntent = Union[Raw, Root, AppendOrPrepend, BeforeOrAfter]
