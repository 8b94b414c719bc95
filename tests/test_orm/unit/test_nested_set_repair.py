"""树修复、重建与一致性检查测试

测试内容：
1. 修复器：按 parent_id 重新编号、孤儿节点提升为根、幂等、子树修复
2. 重建：新建、更新、标识不存在、未引用节点的处理策略、导出往返
3. 一致性检查：四项计数与 assert_valid_tree
"""

import pytest
from sqlalchemy import update

from nestedset.config import configure_nested_set
from nestedset.exceptions import (
    InvalidOperationError,
    NodeNotFoundError,
    StructuralViolationError,
)
from nestedset.orm.tree import (
    NodeRecord,
    TreeErrorReport,
    count_errors,
    fix_tree,
)
from nestedset.orm.tree.fixer import group_by_parent, number_children

from tests.helpers import Category, Menu, Region, TreeTestBase, bounds_of, build_sample_tree


class TestNumbering:
    """纯内存编号"""

    def test_number_children_preorder(self):
        """显式栈先序编号"""
        records = [
            NodeRecord(1, None, 0, 0),
            NodeRecord(2, 1, 0, 0),
            NodeRecord(3, 2, 0, 0),
            NodeRecord(4, 1, 0, 0),
        ]
        groups = group_by_parent(records)
        assigned = {}

        cut = number_children(groups, None, 1, assigned)

        assert cut == 9
        assert assigned == {
            1: (1, 8, None),
            2: (2, 5, 1),
            3: (3, 4, 2),
            4: (6, 7, 1),
        }
        assert not groups

    def test_record_shift(self):
        """记录按间隙规则平移"""
        record = NodeRecord(1, None, 3, 8)
        record.shift(5, 2)
        assert (record.lft, record.rgt) == (3, 10)


class TestFixTree(TreeTestBase):
    """修复器"""

    def test_fix_from_parent_ids(self):
        """边界全部清零后按 parent_id 恢复"""
        root, a, g, b, s = build_sample_tree()
        self.session.execute(update(Category).values(lft=0, rgt=0))
        self.session.commit()
        assert Category.is_broken()

        fixed = Category.fix_tree(commit=True)

        assert fixed == 5
        assert bounds_of(root, a, g, b, s) == [(1, 8), (2, 5), (3, 4), (6, 7), (9, 10)]
        assert not Category.is_broken()

    def test_fix_is_idempotent(self):
        """连续修复两次，第二次没有变更"""
        build_sample_tree()
        self.session.execute(update(Category).where(Category.title == "b").values(lft=20, rgt=21))
        self.session.commit()

        assert Category.fix_tree(commit=True) > 0
        assert Category.fix_tree(commit=True) == 0

    def test_valid_tree_unchanged(self):
        """正确的树不产生变更"""
        build_sample_tree()
        assert Category.fix_tree() == 0

    def test_orphan_becomes_root(self):
        """父节点不存在的节点提升为根"""
        root, a, g, b, s = build_sample_tree()
        self.session.execute(update(Category).where(Category.id == b.id).values(parent_id=999))
        self.session.commit()
        assert Category.count_errors().missing_parent == 1

        fixed = Category.fix_tree(commit=True)

        # R 收缩、S 前移、b 移到末尾
        assert fixed == 3
        assert b.parent_id is None
        assert bounds_of(root, a, g, s, b) == [(1, 6), (2, 5), (3, 4), (7, 8), (9, 10)]
        assert Category.count_errors().total == 0

    def test_fix_subtree(self):
        """只修复一棵子树"""
        root = Category(title="R").save_as_root()
        a = Category(title="a").append_to(root)
        b = Category(title="b").append_to(root)
        s = Category(title="S").save_as_root(commit=True)
        self.session.execute(update(Category).where(Category.id == b.id).values(parent_id=a.id))
        self.session.commit()

        assert root.fix_subtree(commit=True) == 2

        assert bounds_of(root, a, b, s) == [(1, 6), (2, 5), (3, 4), (7, 8)]
        assert Category.count_errors().total == 0

    def test_module_level_fix(self):
        """直接调用 fix_tree 函数"""
        build_sample_tree()
        self.session.execute(update(Category).values(lft=0, rgt=0))

        assert fix_tree(self.session, Category) == 5
        assert count_errors(self.session, Category).total == 0


class TestRebuildTree(TreeTestBase):
    """按载荷重建"""

    payload = [
        {"title": "电器", "children": [
            {"title": "电视"},
            {"title": "冰箱"},
        ]},
        {"title": "服装"},
    ]

    def nodes_by_title(self, model=Category):
        return {node.title: node for node in model.tree_query().all()}

    def test_create_from_payload(self):
        """空树按载荷新建"""
        assert Category.rebuild_tree(self.payload, commit=True) == 4

        nodes = self.nodes_by_title()
        assert bounds_of(nodes["电器"], nodes["电视"], nodes["冰箱"], nodes["服装"]) == [
            (1, 6), (2, 3), (4, 5), (7, 8),
        ]
        assert nodes["电视"].parent_id == nodes["电器"].id
        assert nodes["服装"].parent_id is None

    def test_update_existing_nodes(self):
        """带标识的载荷更新已有节点并调整顺序"""
        Category.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title()

        Category.rebuild_tree([
            {"id": nodes["服装"].id, "title": "服饰"},
            {"id": nodes["电器"].id, "children": [
                {"id": nodes["冰箱"].id},
                {"id": nodes["电视"].id},
            ]},
        ], commit=True)

        assert [node.title for node in Category.roots()] == ["服饰", "电器"]
        assert [node.title for node in nodes["电器"].get_children()] == ["冰箱", "电视"]
        assert Category.query.count() == 4
        assert Category.count_errors().total == 0

    def test_unknown_id_fails_whole_rebuild(self):
        """载荷中的标识不存在时整体失败并回滚"""
        Category.rebuild_tree(self.payload, commit=True)

        with pytest.raises(NodeNotFoundError) as exc_info:
            Category.rebuild_tree([
                {"title": "新节点"},
                {"id": 999, "title": "不存在"},
            ])

        assert exc_info.value.node_id == 999
        assert Category.query.count() == 4
        assert Category.query.filter(Category.title == "新节点").count() == 0

    def test_unmatched_kept_by_default(self):
        """未引用的节点默认保留并排在载荷节点之后"""
        Category.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title()

        Category.rebuild_tree([{"id": nodes["服装"].id}], commit=True)

        assert Category.query.count() == 4
        assert [node.title for node in Category.roots()] == ["服装", "电器"]
        assert Category.count_errors().total == 0

    def test_unmatched_deleted(self):
        """delete=True 时物理删除未引用的节点"""
        Category.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title()

        Category.rebuild_tree([
            {"id": nodes["电器"].id, "children": [{"id": nodes["电视"].id}]},
        ], delete=True, commit=True)

        remaining = self.nodes_by_title()
        assert sorted(remaining) == ["电器", "电视"]
        assert bounds_of(remaining["电器"], remaining["电视"]) == [(1, 4), (2, 3)]

    def test_delete_policy_from_settings(self):
        """delete 为空时使用配置"""
        configure_nested_set(rebuild_delete_unmatched=True)
        Category.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title()

        Category.rebuild_tree([{"id": nodes["服装"].id}], commit=True)

        assert Category.query.count() == 1

    def test_unmatched_soft_deleted(self):
        """支持软删除的模型对未引用节点执行软删除"""
        Region.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title(Region)

        Region.rebuild_tree([{"id": nodes["电器"].id}], delete=True, commit=True)

        assert [node.title for node in Region.query.all()] == ["电器"]
        assert Region.tree_query().count() == 4
        assert Region.count_errors().total == 0

    def test_soft_deleted_row_can_be_matched(self):
        """已软删除的行仍可按标识匹配，删除标记保留"""
        Region.rebuild_tree(self.payload, commit=True)
        nodes = self.nodes_by_title(Region)
        nodes["服装"].delete(commit=True)

        Region.rebuild_tree([
            {"id": nodes["服装"].id, "title": "服饰"},
            {"id": nodes["电器"].id},
        ], commit=True)

        clothes = Region.tree_query().filter(Region.id == nodes["服装"].id).one()
        assert clothes.title == "服饰"
        assert clothes.is_deleted
        assert (clothes.lft, clothes.rgt) == (1, 2)

    def test_dump_and_rebuild_round_trip(self):
        """导出再重建保持结构不变"""
        Category.rebuild_tree(self.payload, commit=True)
        dumped = Category.dump_tree()

        assert dumped[0]["title"] == "电器"
        assert [child["title"] for child in dumped[0]["children"]] == ["电视", "冰箱"]
        assert "lft" not in dumped[0]

        assert Category.rebuild_tree(dumped, commit=True) == 0
        assert Category.dump_tree() == dumped

    def test_rebuild_subtree(self):
        """只重建一个节点的子孙"""
        root, a, g, b, s = build_sample_tree()

        fixed = root.rebuild_subtree([
            {"id": b.id},
            {"id": a.id, "children": [{"id": g.id}]},
            {"title": "c"},
        ], commit=True)

        assert fixed > 0
        assert [node.title for node in root.get_children()] == ["b", "a", "c"]
        assert (root.lft, root.rgt) == (1, 10)
        assert (s.lft, s.rgt) == (11, 12)
        assert Category.count_errors().total == 0

    def test_rebuild_scoped_requires_scope(self):
        """作用域模型重建需要作用域参数，新节点带上作用域取值"""
        with pytest.raises(InvalidOperationError):
            Menu.rebuild_tree(self.payload)

        Menu.rebuild_tree(self.payload, commit=True, site_id=7)
        assert Menu.scoped(site_id=7).count() == 4
        assert Menu.count_errors(site_id=7).total == 0


class TestCountErrors(TreeTestBase):
    """一致性检查"""

    def test_valid_tree(self):
        """正确的树四项计数都为 0"""
        build_sample_tree()
        report = Category.count_errors()

        assert report == TreeErrorReport()
        assert report.total == 0
        assert not report.is_broken

    def test_missing_parent(self):
        """parent_id 指向不存在的节点"""
        root, a, g, b, s = build_sample_tree()
        self.session.execute(update(Category).where(Category.id == g.id).values(parent_id=999))

        report = Category.count_errors()

        assert report.counters() == {
            "oddness": 0,
            "duplicates": 0,
            "wrong_parent": 0,
            "missing_parent": 1,
        }
        assert report.total == 1

    def test_wrong_parent(self):
        """父子之间夹着其它节点"""
        root, a, g, b, s = build_sample_tree()
        self.session.execute(update(Category).where(Category.id == g.id).values(parent_id=root.id))

        assert Category.count_errors().wrong_parent == 1

    def test_child_outside_parent(self):
        """父节点区间不包含子节点"""
        a = Category(title="A").save_as_root()
        b = Category(title="B").save_as_root(commit=True)
        self.session.execute(update(Category).where(Category.id == b.id).values(parent_id=a.id))

        assert Category.count_errors().wrong_parent == 1

    def test_oddness_and_duplicates(self):
        """边界奇偶错误与重复边界"""
        root, a, g, b, s = build_sample_tree()
        self.session.execute(update(Category).where(Category.id == g.id).values(rgt=5))

        report = Category.count_errors()

        # g [3, 5] 跨度为偶数，且与 a 共用 5
        assert report.oddness == 1
        assert report.duplicates == 1

    def test_assert_valid_tree(self):
        """存在错误时抛出 StructuralViolationError"""
        root, a, g, b, s = build_sample_tree()
        assert Category.assert_valid_tree().total == 0

        self.session.execute(update(Category).where(Category.id == g.id).values(parent_id=999))
        with pytest.raises(StructuralViolationError) as exc_info:
            Category.assert_valid_tree()

        error = exc_info.value
        assert error.report.missing_parent == 1
        assert error.status_code == 409
        assert error.to_dict()["details"] == ["missing_parent: 1"]
