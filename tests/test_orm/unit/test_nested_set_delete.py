"""嵌套集合删除与恢复测试

测试内容：
1. 物理删除合拢间隙
2. 软删除保留区间、批量标记子孙
3. 恢复只处理同批删除的子孙
4. 强制删除软删除模型
"""

from datetime import datetime

import pytest

from nestedset.exceptions import InvalidOperationError

from tests.helpers import Category, Region, TreeTestBase, bounds_of, build_sample_tree


class TestHardDelete(TreeTestBase):
    """物理删除"""

    def test_delete_leaf_closes_gap(self):
        """删除 [4, 5] 的叶子，父节点从 [1, 6] 收缩为 [1, 4]"""
        parent = Category(title="P").save_as_root()
        first = Category(title="x").append_to(parent)
        leaf = Category(title="y").append_to(parent)
        after = Category(title="Q").save_as_root(commit=True)
        assert bounds_of(parent, first, leaf, after) == [(1, 6), (2, 3), (4, 5), (7, 8)]

        affected = leaf.delete(commit=True)

        # P 的 rgt 和 Q 被平移
        assert affected == 2
        assert bounds_of(parent, first, after) == [(1, 4), (2, 3), (5, 6)]
        assert Category.get(leaf.id) is None

    def test_delete_subtree(self):
        """删除节点同时删除所有子孙"""
        root, a, g, b, s = build_sample_tree()
        a_id, g_id = a.id, g.id

        a.delete(commit=True)

        assert Category.get(a_id) is None
        assert Category.get(g_id) is None
        assert bounds_of(root, b, s) == [(1, 4), (2, 3), (5, 6)]
        assert Category.count_errors().total == 0

    def test_deleted_instance_is_reset(self):
        """删除后的实例不再持有边界"""
        node = Category(title="A").save_as_root(commit=True)
        node.delete(commit=True)

        assert (node.lft, node.rgt, node.parent_id) == (None, None, None)

    def test_restore_requires_soft_delete(self):
        """不支持软删除的模型不能恢复"""
        node = Category(title="A").save_as_root(commit=True)
        with pytest.raises(InvalidOperationError):
            node.restore()


class TestSoftDelete(TreeTestBase):
    """软删除"""

    def test_soft_delete_keeps_interval(self):
        """软删除不调整边界"""
        root, a, g, b, s = build_sample_tree(Region)

        assert a.delete(commit=True) == 0

        assert a.is_deleted
        assert Region.get(a.id) is None
        assert Region.get(g.id) is None
        assert [node.title for node in root.get_children()] == ["b"]
        assert bounds_of(root, b, s) == [(1, 8), (6, 7), (9, 10)]
        assert Region.count_errors().total == 0

    def test_descendants_share_deleted_at(self):
        """子孙节点与节点使用同一个删除时间"""
        root, a, g, b, s = build_sample_tree(Region)

        a.delete(commit=True)

        rows = Region.tree_query().filter(Region.id.in_([a.id, g.id])).all()
        assert len(rows) == 2
        assert rows[0].deleted_at == rows[1].deleted_at

    def test_restore_subtree(self):
        """恢复节点及同批删除的子孙"""
        root, a, g, b, s = build_sample_tree(Region)
        a.delete(commit=True)

        restored = a.restore(commit=True)

        assert restored == 2
        assert not a.is_deleted
        assert [node.title for node in root.get_descendants()] == ["a", "g", "b"]

    def test_restore_skips_earlier_deletions(self):
        """更早单独删除的子孙不随父节点恢复"""
        root, a, g, b, s = build_sample_tree(Region)
        g.soft_delete(datetime(2000, 1, 1))
        g.save(commit=True)
        a.delete(commit=True)

        assert a.restore(commit=True) == 1

        assert Region.get(a.id) is not None
        assert Region.get(g.id) is None

    def test_restore_active_node_is_noop(self):
        """未删除的节点恢复返回 0"""
        node = Region(title="A").save_as_root(commit=True)
        assert node.restore() == 0

    def test_force_delete_closes_gap(self):
        """强制删除软删除模型时物理删除"""
        root, a, g, b, s = build_sample_tree(Region)

        b.force_delete(commit=True)

        assert Region.tree_query().filter(Region.id == b.id).first() is None
        assert bounds_of(root, a, s) == [(1, 6), (2, 5), (7, 8)]

    def test_force_delete_removes_soft_deleted_descendants(self):
        """强制删除同时清除已软删除的子孙"""
        root, a, g, b, s = build_sample_tree(Region)
        g.delete(commit=True)

        a.force_delete(commit=True)

        assert Region.tree_query().filter(Region.id == g.id).first() is None
        assert Region.tree_query().count() == 3
        assert Region.count_errors().total == 0

    def test_deleted_descendant_references_stay_readable(self):
        """提交后过期的子孙实例，删除后仍可读取属性"""
        root, a, g, b, s = build_sample_tree(Category)
        self.session.expire_all()

        a.delete(commit=True)

        assert (g.id, g.title) == (3, "g")
        assert Category.get(g.id) is None
