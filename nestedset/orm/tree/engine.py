"""间隙管理与节点移动

两种结构写操作都是单条带 CASE 的批量 UPDATE，与子树大小无关只需一次往返：

- make_gap(cut, height): 所有 >= cut 的边界值整体平移 height（负数表示合拢间隙）
- move_node(id, position): 把节点及其子树搬到 position，并平移途经的节点

两者都在写之前 flush 会话，写之后使会话中已加载对象的 lft/rgt 过期。
"""

from typing import Any, Dict, Optional

from sqlalchemy import case, or_, update
from sqlalchemy.orm import Session

from nestedset.log import get_logger

from ...exceptions import InvalidOperationError
from .bounds import expire_loaded_nodes, get_scope_fields, load_node_bounds, scope_criteria

logger = get_logger("nestedset.orm.tree.engine")


def make_gap(
    session: Session,
    cls,
    cut: int,
    height: int,
    scope_values: Optional[Dict[str, Any]] = None,
) -> int:
    """在 cut 处打开（height > 0）或合拢（height < 0）一个宽度为 |height| 的间隙

    Args:
        session: 会话
        cls: 树模型类
        cut: 切分点，>= cut 的边界值会被平移
        height: 平移量
        scope_values: 作用域取值

    Returns:
        受影响的行数
    """
    lft, rgt = cls.lft, cls.rgt
    stmt = (
        update(cls)
        .where(or_(lft >= cut, rgt >= cut))
        .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .values({
            lft: case((lft >= cut, lft + height), else_=lft),
            rgt: case((rgt >= cut, rgt + height), else_=rgt),
        })
        .execution_options(synchronize_session=False)
    )

    session.flush()
    affected = session.execute(stmt).rowcount
    expire_loaded_nodes(session, cls)

    logger.debug(f"{cls.__name__} 在 {cut} 处平移边界 {height:+d}，影响 {affected} 行")
    return affected


def move_node(
    session: Session,
    cls,
    node_id: Any,
    position: int,
    scope_values: Optional[Dict[str, Any]] = None,
) -> int:
    """把节点（连同子树）移动到边界位置 position

    子树右移时，途经节点左移 height，子树右移 distance；
    子树左移时，途经节点右移 height，子树左移 distance。

    Args:
        session: 会话
        cls: 树模型类
        node_id: 被移动节点的ID
        position: 目标位置（移动后子树的左边界在旧编号下的位置）
        scope_values: 作用域取值

    Returns:
        受影响的行数，位置不变时为 0

    Raises:
        NodeNotFoundError: 节点不存在
        InvalidOperationError: 目标位置在节点自身子树内
    """
    session.flush()
    bounds = load_node_bounds(session, cls, node_id, scope_values)
    node_lft, node_rgt = bounds

    if node_lft < position <= node_rgt:
        raise InvalidOperationError(
            "不能将节点移动到自身子树内",
            node_id=node_id,
            position=position,
        )

    start = min(node_lft, position)
    end = max(node_rgt, position - 1)
    height = node_rgt - node_lft + 1
    distance = end - start + 1 - height

    if distance == 0:
        return 0

    if position > node_lft:
        height = -height
    else:
        distance = -distance

    lft, rgt = cls.lft, cls.rgt
    stmt = (
        update(cls)
        .where(or_(lft.between(start, end), rgt.between(start, end)))
        .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
        .values({
            column: case(
                (column.between(node_lft, node_rgt), column + distance),
                (column.between(start, end), column + height),
                else_=column,
            )
            for column in (lft, rgt)
        })
        .execution_options(synchronize_session=False)
    )

    affected = session.execute(stmt).rowcount
    expire_loaded_nodes(session, cls)

    logger.debug(
        f"{cls.__name__} 节点 {node_id} 从 [{node_lft}, {node_rgt}] 移动到 {position}，影响 {affected} 行"
    )
    return affected
