"""事务辅助

树结构的写操作（开/合间隙、移动、修复、重建）由多条语句组成，
任何一步失败都必须整体回滚，不能留下半更新的边界值。
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from nestedset.log import get_logger

logger = get_logger("nestedset.orm.transaction")


@contextmanager
def atomic(session: Session, operation: str = "树结构操作") -> Generator[Session, None, None]:
    """在当前事务中执行一组写操作，出错时回滚整个 session 并重新抛出

    Args:
        session: SQLAlchemy Session
        operation: 操作名称，用于日志

    使用示例:
        with atomic(session, "移动节点"):
            make_gap(session, Category, 5, 2, {})
            move_node(session, Category, node_id, 9, {})
    """
    try:
        yield session
    except Exception as e:
        logger.warning(f"{operation}失败，回滚事务: {e}")
        session.rollback()
        raise
