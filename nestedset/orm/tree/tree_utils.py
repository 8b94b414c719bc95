"""树形数据工具函数

在字典层面处理树：把按 lft 排好序的节点字典组装成嵌套结构，
或把嵌套结构（例如重建载荷）展开回扁平列表。

使用示例:
    from nestedset.orm.tree import build_tree_list, flatten_tree

    rows = [node.to_dict() for node in Category.roots().all()]
    tree = build_tree_list(rows)

    flat = flatten_tree(tree, depth_field="depth")
"""

from typing import Any, Callable, Dict, List, Optional


def build_tree_list(
    nodes: List[Dict[str, Any]],
    id_field: str = "id",
    parent_field: str = "parent_id",
    children_field: str = "children",
    sort_key: Optional[Callable[[Dict], Any]] = None,
) -> List[Dict[str, Any]]:
    """把扁平的节点字典列表组装为嵌套树

    同级节点保持输入顺序（按 lft 排序的输入即为树的先序）。
    父节点不在列表中的节点作为根返回，不会丢失。

    Args:
        nodes: 节点字典列表
        id_field: ID 字段名
        parent_field: 父节点 ID 字段名
        children_field: 输出中子节点列表的字段名
        sort_key: 可选的同级排序函数

    Returns:
        根节点列表，每个节点带 children_field

    使用示例:
        build_tree_list([
            {"id": 1, "parent_id": None, "title": "电器"},
            {"id": 2, "parent_id": 1, "title": "电视"},
        ])
        # [{"id": 1, ..., "children": [{"id": 2, ..., "children": []}]}]
    """
    node_map: Dict[Any, Dict[str, Any]] = {}
    for node in nodes:
        # 复制，不修改调用方的数据
        item = dict(node)
        item[children_field] = []
        node_map[item[id_field]] = item

    roots: List[Dict[str, Any]] = []
    for item in node_map.values():
        parent = node_map.get(item.get(parent_field))
        if parent is None:
            roots.append(item)
        else:
            parent[children_field].append(item)

    if sort_key:
        pending = [roots]
        while pending:
            siblings = pending.pop()
            siblings.sort(key=sort_key)
            pending.extend(item[children_field] for item in siblings if item[children_field])

    return roots


def flatten_tree(
    tree: List[Dict[str, Any]],
    children_field: str = "children",
    keep_children: bool = False,
    depth_field: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """把嵌套树按先序展开为扁平列表

    Args:
        tree: 嵌套的树形结构列表
        children_field: 子节点列表字段名
        keep_children: 结果中是否保留子节点字段
        depth_field: 指定后写入节点深度（根为 0）

    Returns:
        先序排列的节点字典列表
    """
    result: List[Dict[str, Any]] = []
    stack = [(item, 0) for item in reversed(tree)]

    while stack:
        node, depth = stack.pop()
        item = dict(node)
        children = item.pop(children_field, None) or []
        if keep_children:
            item[children_field] = children
        if depth_field:
            item[depth_field] = depth
        result.append(item)

        stack.extend((child, depth + 1) for child in reversed(children))

    return result


def find_node_in_tree(
    tree: List[Dict[str, Any]],
    target_id: Any,
    id_field: str = "id",
    children_field: str = "children",
) -> Optional[Dict[str, Any]]:
    """在嵌套树中查找节点，未找到返回 None"""
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        if node.get(id_field) == target_id:
            return node
        stack.extend(reversed(node.get(children_field) or []))
    return None


__all__ = [
    "build_tree_list",
    "flatten_tree",
    "find_node_in_tree",
]
