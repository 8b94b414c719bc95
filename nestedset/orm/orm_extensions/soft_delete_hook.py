"""软删除事件钩子"""

from sqlalchemy.event import listens_for
from sqlalchemy.orm import Session, with_loader_criteria

from nestedset.log import get_logger

logger = get_logger("nestedset.orm.soft_delete")

# 查询时跳过软删除过滤的 execution option 名称
INCLUDE_DELETED_OPTION = "include_deleted"

_hook_activated = False


def activate_soft_delete_hook():
    """激活软删除钩子（幂等）

    注册 do_orm_execute 监听器，为所有 ORM SELECT 追加 deleted_at IS NULL 条件，
    对别名实体同样生效。以下情况不追加：
    - 语句带有 execution_options(include_deleted=True)
    - 属性刷新（refresh / 过期属性加载）和关系加载

    使用示例:
        # 之后所有查询自动过滤已删除记录
        Category.query.all()

        # 包含已删除记录
        Category.query.execution_options(include_deleted=True).all()
    """
    global _hook_activated

    if _hook_activated:
        return

    from .soft_delete_mixin import SoftDeleteMixin

    @listens_for(Session, "do_orm_execute")
    def _do_orm_execute(orm_execute_state):
        if (
            orm_execute_state.is_select
            and not orm_execute_state.is_column_load
            and not orm_execute_state.is_relationship_load
            and not orm_execute_state.execution_options.get(INCLUDE_DELETED_OPTION, False)
        ):
            orm_execute_state.statement = orm_execute_state.statement.options(
                with_loader_criteria(
                    SoftDeleteMixin,
                    lambda cls: cls.deleted_at.is_(None),
                    include_aliases=True,
                )
            )

    _hook_activated = True
    logger.debug("软删除查询钩子已激活")
