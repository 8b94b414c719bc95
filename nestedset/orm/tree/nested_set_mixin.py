"""嵌套集合树 Mixin

为模型提供嵌套集合（Nested Set）树操作：插入/移动、删除/恢复、
层级查询、修复、重建和一致性检查。

使用示例:
    from nestedset.orm import CoreModel
    from nestedset.orm.tree import NestedSetMixin, NestedSetFieldsMixin

    class Category(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
        __tablename__ = "category"

        title: Mapped[str] = mapped_column(String(100), default="")

    root = Category(title="电器").save_as_root(commit=True)
    tv = Category(title="电视").append_to(root, commit=True)

    root.get_descendants()          # [tv]
    tv.get_ancestors()              # [root]
    Category.with_depth().all()     # [(root, 0), (tv, 1)]

按作用域划分多片森林:
    class Menu(NestedSetMixin, CoreModel, NestedSetFieldsMixin):
        __tablename__ = "menu"
        __tree_scope__ = "site_id"

        site_id: Mapped[int] = mapped_column(Integer)

    Menu.roots(site_id=1).all()
    Menu.fix_tree(site_id=1, commit=True)

注意：NestedSetMixin 需要放在 CoreModel 之前，使 save()/delete() 覆盖基础实现。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple, TYPE_CHECKING

from sqlalchemy import delete as sql_delete, inspect, select, update
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.attributes import set_committed_value

if TYPE_CHECKING:
    from typing_extensions import Self

from nestedset.log import get_logger

from ...config import get_nested_set_settings
from ...exceptions import (
    InvalidOperationError,
    NodeNotFoundError,
    ScopeMismatchError,
    StructuralViolationError,
)
from ..orm_extensions import INCLUDE_DELETED_OPTION, SoftDeleteMixin
from ..transaction import atomic
from . import predicates as p
from .bounds import (
    STRUCTURE_ATTRIBUTES,
    NodeBounds,
    expire_loaded_nodes,
    get_scope_fields,
    get_scope_values,
    is_same_scope,
    load_max_rgt,
    load_node_bounds,
    require_scope_values,
    scope_criteria,
)
from .checker import TreeErrorReport, count_errors as check_scope
from .engine import make_gap, move_node
from .fixer import fix_tree as fix_scope, load_root_record
from .intents import AppendOrPrepend, BeforeOrAfter, NodeIntent, Raw, Root
from .rebuilder import fillable_attributes, rebuild_tree as rebuild_scope
from .tree_utils import build_tree_list

logger = get_logger("nestedset.orm.tree")


class NestedSetMixin:
    """嵌套集合树操作 Mixin

    类属性:
        __tree_scope__: 作用域字段（字符串或列表），为空表示整张表只有一片森林

    结构写操作都在 atomic() 中执行，失败时整体回滚；
    参数校验在写之前完成，校验失败不会触碰会话。
    """

    __tree_scope__: ClassVar[Any] = []

    # 是否支持软删除，类创建时确定
    _nested_set_soft_delete: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._nested_set_soft_delete = issubclass(cls, SoftDeleteMixin)

    # ==================== 会话辅助 ====================

    @classmethod
    def _tree_session(cls) -> Session:
        return cls.query.session

    def _commit_if(self, commit: bool):
        if commit:
            self.session.commit()

    @classmethod
    def _cls_commit_if(cls, commit: bool):
        if commit:
            cls._tree_session().commit()

    def _is_placed(self) -> bool:
        """节点是否已持久化并拥有有效边界"""
        if not inspect(self).persistent:
            return False
        bounds = load_node_bounds(self.session, type(self), self.id, required=False)
        return bounds is not None and bounds.is_valid

    # ==================== 保存与插入意图 ====================

    def save(self, commit: bool = False, intent: Optional[NodeIntent] = None) -> "Self":
        """保存节点

        未指定 intent 时：
        - 新节点：设置了 parent_id 则追加为该父节点的最后一个子节点，否则作为新的根
        - 已有节点：parent_id 自加载后被修改时按新的 parent_id 移动，否则不改动结构

        Args:
            commit: 是否立即提交
            intent: 插入意图，只在本次保存中使用

        Returns:
            self: 支持链式调用
        """
        if intent is None:
            intent = self._default_intent()
        if intent is not None:
            self.apply_intent(intent)
        return super().save(commit=commit)

    def _default_intent(self) -> Optional[NodeIntent]:
        state = inspect(self)
        if state.persistent:
            parent_changed = state.attrs.parent_id.history.has_changes()
            if not parent_changed and self._is_placed():
                return None

        if self.parent_id is None:
            return Root()

        cls = type(self)
        parent = (
            self.session.query(cls)
            .filter(cls.id == self.parent_id)
            .filter(*scope_criteria(cls, get_scope_fields(cls), get_scope_values(self)))
            .first()
        )
        if parent is None:
            raise NodeNotFoundError(f"父节点不存在: {self.parent_id}", node_id=self.parent_id)
        return AppendOrPrepend(parent)

    def apply_intent(self, intent: NodeIntent) -> int:
        """解析插入意图并执行一次结构写操作

        Returns:
            结构写操作影响的行数

        Raises:
            NodeNotFoundError: 锚点不存在
            InvalidOperationError: 锚点无有效边界，或锚点是节点自身/子孙
            ScopeMismatchError: 锚点与节点不在同一作用域
            TypeError: 未知的意图类型
        """
        if isinstance(intent, Raw):
            self.lft = intent.lft
            self.rgt = intent.rgt
            self.parent_id = intent.parent_id
            return 0

        if isinstance(intent, Root):
            position = load_max_rgt(self.session, type(self), get_scope_values(self)) + 1
            parent_id = None
        elif isinstance(intent, AppendOrPrepend):
            parent, bounds = self._assert_can_attach(intent.parent)
            position = bounds.lft + 1 if intent.prepend else bounds.rgt
            parent_id = parent.id
        elif isinstance(intent, BeforeOrAfter):
            anchor, bounds = self._assert_can_attach(intent.anchor)
            position = bounds.rgt + 1 if intent.after else bounds.lft
            parent_id = anchor.parent_id
        else:
            raise TypeError(f"未知的节点插入意图: {intent!r}")

        session = self.session
        with atomic(session, f"{type(self).__name__} 节点插入"):
            affected = self._insert_at(position)
            self.parent_id = parent_id
            session.add(self)
            session.flush()
        return affected

    def _insert_at(self, position: int) -> int:
        """已有节点移动到 position，新节点在 position 处打开间隙后占位"""
        cls = type(self)
        scope_values = get_scope_values(self)

        if self._is_placed():
            return move_node(self.session, cls, self.id, position, scope_values)

        affected = make_gap(self.session, cls, position, 2, scope_values)
        self.lft = position
        self.rgt = position + 1
        return affected

    def _assert_can_attach(self, anchor: Any) -> Tuple[Any, NodeBounds]:
        """校验节点可以挂到 anchor 上或旁边，返回锚点和它当前的边界"""
        cls = type(self)
        session = self.session

        if not isinstance(anchor, cls):
            anchor_id = anchor
            anchor = session.get(cls, anchor_id)
            if anchor is None:
                raise NodeNotFoundError(node_id=anchor_id)

        if anchor.id is None:
            raise InvalidOperationError("锚点节点尚未保存", node_id=self.id)

        if not is_same_scope(self, anchor):
            raise ScopeMismatchError(
                expected=get_scope_values(anchor),
                actual=get_scope_values(self),
            )

        bounds = load_node_bounds(session, cls, anchor.id, get_scope_values(anchor))
        if not bounds.is_valid:
            raise InvalidOperationError(
                f"锚点节点 {anchor.id} 没有有效的边界",
                anchor_id=anchor.id,
                lft=bounds.lft,
                rgt=bounds.rgt,
            )

        if self.id is not None and self._is_placed():
            if anchor.id == self.id:
                raise InvalidOperationError("不能以节点自身作为锚点", node_id=self.id)
            own = load_node_bounds(session, cls, self.id)
            if own.contains(bounds):
                raise InvalidOperationError(
                    "不能把节点挂到自己的子孙节点下",
                    node_id=self.id,
                    anchor_id=anchor.id,
                )

        return anchor, bounds

    def save_as_root(self, commit: bool = False) -> "Self":
        """作为新的根节点（已有节点则移动到森林末尾）"""
        return self.save(commit=commit, intent=Root())

    def append_to(self, parent, commit: bool = False) -> "Self":
        """作为 parent 的最后一个子节点"""
        return self.save(commit=commit, intent=AppendOrPrepend(parent))

    def prepend_to(self, parent, commit: bool = False) -> "Self":
        """作为 parent 的第一个子节点"""
        return self.save(commit=commit, intent=AppendOrPrepend(parent, prepend=True))

    def insert_before(self, node, commit: bool = False) -> "Self":
        """放到 node 之前，成为其兄弟节点"""
        return self.save(commit=commit, intent=BeforeOrAfter(node))

    def insert_after(self, node, commit: bool = False) -> "Self":
        """放到 node 之后，成为其兄弟节点"""
        return self.save(commit=commit, intent=BeforeOrAfter(node, after=True))

    def append_node(self, child, commit: bool = False):
        """把 child 追加为自己的最后一个子节点，返回 child"""
        return child.append_to(self, commit=commit)

    def prepend_node(self, child, commit: bool = False):
        """把 child 插入为自己的第一个子节点，返回 child"""
        return child.prepend_to(self, commit=commit)

    def up(self, amount: int = 1, commit: bool = False) -> bool:
        """在兄弟节点中前移 amount 位

        Returns:
            前面没有足够的兄弟节点时返回 False，不做任何改动
        """
        cls = type(self)
        sibling = (
            self.prev_siblings()
            .order_by(None)
            .order_by(p.tree_order(cls, reverse=True))
            .offset(amount - 1)
            .first()
        )
        if sibling is None:
            return False
        self.insert_before(sibling, commit=commit)
        return True

    def down(self, amount: int = 1, commit: bool = False) -> bool:
        """在兄弟节点中后移 amount 位"""
        sibling = self.next_siblings().offset(amount - 1).first()
        if sibling is None:
            return False
        self.insert_after(sibling, commit=commit)
        return True

    @classmethod
    def create_node(cls, attributes: Dict[str, Any], parent=None, commit: bool = False):
        """创建节点，attributes 中的 children 会递归创建为子节点

        使用示例:
            Category.create_node({
                "title": "电器",
                "children": [{"title": "电视"}, {"title": "冰箱"}],
            }, commit=True)
        """
        attributes = dict(attributes)
        children = attributes.pop(get_nested_set_settings().payload_children_key, None) or []

        node = cls(**attributes)
        if parent is None:
            node.save_as_root()
        else:
            node.append_to(parent)

        for child in children:
            cls.create_node(child, parent=node)

        cls._cls_commit_if(commit)
        return node

    # ==================== 删除与恢复 ====================

    def delete(self, commit: bool = False, force: bool = False) -> int:
        """删除节点及其所有子孙

        支持软删除的模型默认只标记删除时间，不调整边界；
        force=True 或模型不支持软删除时物理删除并合拢间隙。

        Returns:
            合拢间隙时被平移的行数（软删除为 0）
        """
        if type(self)._nested_set_soft_delete and not force:
            self._soft_delete_subtree()
            self._commit_if(commit)
            return 0

        affected = self._hard_delete_subtree()
        self._commit_if(commit)
        return affected

    def force_delete(self, commit: bool = False) -> int:
        """物理删除节点及其所有子孙"""
        return self.delete(commit=commit, force=True)

    def _stored_bounds(self) -> NodeBounds:
        if not inspect(self).persistent:
            raise InvalidOperationError("节点尚未保存", node_id=self.id)
        return load_node_bounds(self.session, type(self), self.id, get_scope_values(self))

    def _soft_delete_subtree(self):
        cls = type(self)
        session = self.session
        bounds = self._stored_bounds()
        deleted_at = datetime.now()

        with atomic(session, f"{cls.__name__} 节点软删除"):
            session.flush()
            stmt = (
                update(cls)
                .where(p.where_node_between(cls, bounds.lft + 1, bounds.rgt))
                .where(*scope_criteria(cls, get_scope_fields(cls), get_scope_values(self)))
                .where(cls.deleted_at.is_(None))
                .values(deleted_at=deleted_at)
                .execution_options(synchronize_session=False)
            )
            marked = session.execute(stmt).rowcount
            expire_loaded_nodes(session, cls, ("deleted_at",))
            self.deleted_at = deleted_at
            session.add(self)

        logger.debug(f"{cls.__name__} 节点 {self.id} 软删除，子孙节点 {marked} 个")

    def _hard_delete_subtree(self) -> int:
        cls = type(self)
        session = self.session
        bounds = self._stored_bounds()
        scope_values = get_scope_values(self)

        with atomic(session, f"{cls.__name__} 节点删除"):
            session.flush()
            descendant_ids = session.execute(
                select(cls.id)
                .where(p.where_node_between(cls, bounds.lft + 1, bounds.rgt))
                .where(*scope_criteria(cls, get_scope_fields(cls), scope_values))
                .execution_options(**{INCLUDE_DELETED_OPTION: True})
            ).scalars().all()

            if descendant_ids:
                removed = set(descendant_ids)
                loaded = [
                    obj for obj in list(session.identity_map.values())
                    if isinstance(obj, cls)
                    and inspect(obj).identity
                    and inspect(obj).identity[0] in removed
                ]
                # 脱离会话前加载过期属性，调用方持有的引用仍可读取
                for obj in loaded:
                    if inspect(obj).expired_attributes:
                        session.refresh(obj)

                session.execute(
                    sql_delete(cls)
                    .where(cls.id.in_(descendant_ids))
                    .execution_options(synchronize_session=False)
                )
                for obj in loaded:
                    session.expunge(obj)

            session.delete(self)
            affected = make_gap(session, cls, bounds.rgt + 1, -bounds.height, scope_values)

        # 脱离会话的实例恢复为未入树状态
        for attr in STRUCTURE_ATTRIBUTES:
            set_committed_value(self, attr, None)

        logger.debug(f"{cls.__name__} 节点 {self.id} 删除，子孙节点 {len(descendant_ids)} 个")
        return affected

    def restore(self, commit: bool = False) -> int:
        """恢复软删除的节点，以及与它同一批（或更晚）被删除的子孙节点

        Returns:
            恢复的行数（包含自身），节点未删除时为 0

        Raises:
            InvalidOperationError: 模型不支持软删除
        """
        cls = type(self)
        if not cls._nested_set_soft_delete:
            raise InvalidOperationError(f"{cls.__name__} 不支持软删除，无法恢复", node_id=self.id)

        deleted_at = self.deleted_at
        if deleted_at is None:
            return 0

        session = self.session
        bounds = self._stored_bounds()

        with atomic(session, f"{cls.__name__} 节点恢复"):
            session.flush()
            stmt = (
                update(cls)
                .where(p.where_node_between(cls, bounds.lft + 1, bounds.rgt))
                .where(*scope_criteria(cls, get_scope_fields(cls), get_scope_values(self)))
                .where(cls.deleted_at >= deleted_at)
                .values(deleted_at=None)
                .execution_options(synchronize_session=False)
            )
            restored = session.execute(stmt).rowcount
            expire_loaded_nodes(session, cls, ("deleted_at",))
            self.deleted_at = None
            session.add(self)

        self._commit_if(commit)
        logger.debug(f"{cls.__name__} 节点 {self.id} 恢复，子孙节点 {restored} 个")
        return restored + 1

    # ==================== 边界与度量 ====================

    def refresh_bounds(self) -> NodeBounds:
        """从数据库重新读取边界和父节点"""
        if inspect(self).persistent:
            self.session.refresh(self, list(STRUCTURE_ATTRIBUTES))
        return self.get_bounds()

    def get_bounds(self) -> NodeBounds:
        return NodeBounds(self.lft, self.rgt)

    def get_node_height(self) -> int:
        """rgt - lft + 1"""
        return self.get_bounds().height

    def get_descendant_count(self) -> int:
        return self.get_bounds().descendant_count

    def get_depth(self) -> int:
        """节点深度，根节点为 0"""
        cls = type(self)
        stmt = select(p.depth_column(cls)).select_from(cls).where(cls.id == self.id)
        return self.session.execute(stmt).scalar()

    def is_root(self) -> bool:
        return self.parent_id is None

    def is_leaf(self) -> bool:
        return self.rgt - self.lft == 1

    def is_descendant_of(self, other) -> bool:
        return is_same_scope(self, other) and other.get_bounds().contains(self.get_bounds())

    def is_ancestor_of(self, other) -> bool:
        return other.is_descendant_of(self)

    def is_child_of(self, other) -> bool:
        return self.parent_id == other.id and is_same_scope(self, other)

    def is_sibling_of(self, other) -> bool:
        return (
            self.id != other.id
            and self.parent_id == other.parent_id
            and is_same_scope(self, other)
        )

    # ==================== 层级查询 ====================

    def _same_scope_query(self) -> Query:
        cls = type(self)
        return cls.query.filter(p.where_same_scope(cls, self))

    def ancestors(self, and_self: bool = False) -> Query:
        """祖先节点查询，从根到父排序"""
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(p.where_ancestor_of(cls, self, and_self=and_self))
            .order_by(p.tree_order(cls))
        )

    def descendants(self, and_self: bool = False) -> Query:
        """子孙节点查询，按先序排序"""
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(p.where_descendant_of(cls, self, and_self=and_self))
            .order_by(p.tree_order(cls))
        )

    def children(self) -> Query:
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(cls.parent_id == self.id)
            .order_by(p.tree_order(cls))
        )

    def siblings(self, and_self: bool = False) -> Query:
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(p.where_sibling_of(cls, self, and_self=and_self))
            .order_by(p.tree_order(cls))
        )

    def next_siblings(self) -> Query:
        return self.siblings().filter(p.where_is_after(type(self), self))

    def prev_siblings(self) -> Query:
        return self.siblings().filter(p.where_is_before(type(self), self))

    def next_nodes(self) -> Query:
        """先序在本节点之后的所有节点"""
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(p.where_is_after(cls, self))
            .order_by(p.tree_order(cls))
        )

    def prev_nodes(self) -> Query:
        """先序在本节点之前的所有节点"""
        cls = type(self)
        return (
            self._same_scope_query()
            .filter(p.where_is_before(cls, self))
            .order_by(p.tree_order(cls))
        )

    def get_ancestors(self, and_self: bool = False) -> List["Self"]:
        return self.ancestors(and_self=and_self).all()

    def get_descendants(self, and_self: bool = False) -> List["Self"]:
        return self.descendants(and_self=and_self).all()

    def get_children(self) -> List["Self"]:
        return self.children().all()

    def get_siblings(self, and_self: bool = False) -> List["Self"]:
        return self.siblings(and_self=and_self).all()

    def get_next_sibling(self) -> Optional["Self"]:
        return self.next_siblings().first()

    def get_prev_sibling(self) -> Optional["Self"]:
        cls = type(self)
        return (
            self.prev_siblings()
            .order_by(None)
            .order_by(p.tree_order(cls, reverse=True))
            .first()
        )

    def get_root(self) -> "Self":
        """所在树的根节点（根节点返回自身）"""
        return self.ancestors(and_self=True).first()

    # ==================== 类级查询 ====================

    @classmethod
    def scoped(cls, **scope) -> Query:
        """限定在一个作用域内的查询"""
        values = require_scope_values(cls, scope)
        return cls.query.filter(*scope_criteria(cls, get_scope_fields(cls), values))

    @classmethod
    def roots(cls, **scope) -> Query:
        return cls.scoped(**scope).filter(p.where_is_root(cls)).order_by(p.tree_order(cls))

    @classmethod
    def leaves(cls, **scope) -> Query:
        return cls.scoped(**scope).filter(p.where_is_leaf(cls)).order_by(p.tree_order(cls))

    @classmethod
    def with_depth(cls, alias: str = None, **scope) -> Query:
        """带深度列的查询，结果为 (节点, 深度) 元组

        使用示例:
            for node, depth in Category.with_depth():
                print("  " * depth + node.title)
        """
        alias = alias or get_nested_set_settings().depth_alias
        return (
            cls.scoped(**scope)
            .add_columns(p.depth_column(cls, alias))
            .order_by(p.tree_order(cls))
        )

    @classmethod
    def tree_query(cls, **scope) -> Query:
        """作用域内全部节点（包含已软删除），按先序排序"""
        return (
            cls.scoped(**scope)
            .execution_options(**{INCLUDE_DELETED_OPTION: True})
            .order_by(p.tree_order(cls))
        )

    # ==================== 修复与重建 ====================

    @classmethod
    def fix_tree(cls, commit: bool = False, **scope) -> int:
        """按 parent_id 重新计算整个作用域的边界

        Returns:
            写回的行数，树本身正确时为 0
        """
        values = require_scope_values(cls, scope)
        session = cls._tree_session()
        with atomic(session, f"{cls.__name__} 修复树"):
            fixed = fix_scope(session, cls, values)
        cls._cls_commit_if(commit)
        logger.info(f"{cls.__name__} 修复树完成，变更 {fixed} 行")
        return fixed

    def fix_subtree(self, commit: bool = False) -> int:
        """只修复以本节点为根的子树"""
        cls = type(self)
        session = self.session
        session.flush()
        root = load_root_record(session, cls, self.id)
        if root is None:
            raise NodeNotFoundError(node_id=self.id)

        with atomic(session, f"{cls.__name__} 修复子树"):
            fixed = fix_scope(session, cls, get_scope_values(self), root)
        self._commit_if(commit)
        return fixed

    @classmethod
    def rebuild_tree(
        cls,
        data: List[Dict[str, Any]],
        delete: Optional[bool] = None,
        commit: bool = False,
        **scope,
    ) -> int:
        """用层级载荷重建整个作用域

        Args:
            data: 层级载荷，格式见 rebuilder 模块
            delete: 是否删除载荷中未出现的节点，为空时使用配置 rebuild_delete_unmatched
            commit: 是否立即提交
            **scope: 作用域取值

        Raises:
            NodeNotFoundError: 载荷中的节点标识不存在，整个操作回滚
        """
        values = require_scope_values(cls, scope)
        if delete is None:
            delete = get_nested_set_settings().rebuild_delete_unmatched

        session = cls._tree_session()
        with atomic(session, f"{cls.__name__} 重建树"):
            fixed = rebuild_scope(session, cls, data, delete, values)
        cls._cls_commit_if(commit)
        logger.info(f"{cls.__name__} 重建树完成，变更 {fixed} 行")
        return fixed

    def rebuild_subtree(
        self,
        data: List[Dict[str, Any]],
        delete: Optional[bool] = None,
        commit: bool = False,
    ) -> int:
        """用层级载荷重建本节点的子孙节点"""
        cls = type(self)
        if delete is None:
            delete = get_nested_set_settings().rebuild_delete_unmatched

        session = self.session
        session.flush()
        root = load_root_record(session, cls, self.id)
        if root is None:
            raise NodeNotFoundError(node_id=self.id)

        with atomic(session, f"{cls.__name__} 重建子树"):
            fixed = rebuild_scope(session, cls, data, delete, get_scope_values(self), root)
        self._commit_if(commit)
        return fixed

    @classmethod
    def dump_tree(cls, **scope) -> List[Dict[str, Any]]:
        """导出为重建载荷格式（节点标识 + 可写字段 + children），不含已软删除的节点"""
        settings = get_nested_set_settings()
        id_key = settings.payload_id_key
        children_key = settings.payload_children_key
        fillable = sorted(fillable_attributes(cls))

        items: Dict[Any, Dict[str, Any]] = {}
        roots: List[Dict[str, Any]] = []
        for node in cls.scoped(**scope).order_by(p.tree_order(cls)):
            item = {id_key: node.id}
            item.update((key, getattr(node, key)) for key in fillable)
            item[children_key] = []
            items[node.id] = item

            parent = items.get(node.parent_id)
            if parent is None:
                roots.append(item)
            else:
                parent[children_key].append(item)
        return roots

    @classmethod
    def get_tree_list(cls, **scope) -> List[Dict[str, Any]]:
        """作用域内的嵌套字典树（每个节点为 to_dict() 结果加 children）"""
        nodes = cls.scoped(**scope).order_by(p.tree_order(cls)).all()
        return build_tree_list(
            [node.to_dict() for node in nodes],
            children_field=get_nested_set_settings().payload_children_key,
        )

    # ==================== 一致性检查 ====================

    @classmethod
    def count_errors(cls, **scope) -> TreeErrorReport:
        """统计作用域内的结构错误"""
        values = require_scope_values(cls, scope)
        return check_scope(cls._tree_session(), cls, values)

    @classmethod
    def is_broken(cls, **scope) -> bool:
        return cls.count_errors(**scope).is_broken

    @classmethod
    def assert_valid_tree(cls, **scope) -> TreeErrorReport:
        """检查作用域，存在结构错误时抛出 StructuralViolationError"""
        report = cls.count_errors(**scope)
        if report.is_broken:
            raise StructuralViolationError(report, scope=scope)
        return report
