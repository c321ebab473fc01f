from __future__ import annotations

"""Conversion between the persisted flat tree and its nested view form.

The persisted tree is a flat list of nodes with parent keys; sibling order is
the relative order of nodes sharing a parent in that list. Everything here is
pure: inputs are never mutated and results are rebuilt on every call.
"""

from typing import Callable, Dict, Iterable, List, Optional, Sequence

from hierarchy_toolkit.core.models import FlatItem, FlattenedItem, NestedNode, TreeNode

__all__ = [
    "to_nested",
    "to_flat",
    "flatten_tree",
    "flatten_with_depth",
    "is_descendant",
    "visible_count",
    "node_depth",
    "node_with_descendants",
    "sibling_keys",
]


def to_nested(flat: Iterable[TreeNode]) -> List[NestedNode]:
    """Group a flat parent-pointer list into a nested tree.

    A node whose parent key does not exist in *flat* is placed at the root.
    Runs in linear time: one pass to index by key, one to attach children.
    """
    items = list(flat)
    by_key: Dict[str, NestedNode] = {}
    for item in items:
        by_key[item.key] = NestedNode.from_node(item, children=[])

    roots: List[NestedNode] = []
    for item in items:
        nested = by_key[item.key]
        parent = by_key.get(item.parent) if item.parent else None
        if parent is not None and parent is not nested:
            parent.children.append(nested)
        else:
            roots.append(nested)
    return roots


def to_flat(
    nested: Sequence[NestedNode],
    get_node_key: Optional[Callable[[NestedNode], str]] = None,
) -> List[FlatItem]:
    """Depth-first, pre-order traversal yielding a FlatItem per node."""
    key_of = get_node_key or (lambda node: node.key)
    result: List[FlatItem] = []

    def traverse(items: Sequence[NestedNode], path: List[str], parent: Optional[NestedNode]) -> None:
        for item in items:
            current_path = path + [key_of(item)]
            result.append(FlatItem(node=item, path=current_path, flat_index=len(result), parent_node=parent))
            if item.children:
                traverse(item.children, current_path, item)

    traverse(nested, [], None)
    return result


def flatten_tree(nested: Sequence[NestedNode]) -> List[TreeNode]:
    """Strip a nested tree back to a pre-order flat list of TreeNodes.

    Parent pointers are taken from the nesting, not from the nodes' own
    ``parent`` attribute, so the result always matches the shape given.
    """
    result: List[TreeNode] = []
    for item in to_flat(nested):
        node = item.node.to_tree_node()
        node.parent = item.parent_node.key if item.parent_node is not None else None
        result.append(node)
    return result


def flatten_with_depth(
    nested: Sequence[NestedNode],
    parent_key: Optional[str] = None,
    depth: int = 0,
) -> List[FlattenedItem]:
    """Depth-annotated rows of the visible nodes, in visual order.

    Children of collapsed nodes (``expanded is False``) are not visible and
    therefore not included.
    """
    rows: List[FlattenedItem] = []
    for index, item in enumerate(nested):
        rows.append(FlattenedItem(node=item, depth=depth, parent_key=parent_key, index=index))
        if item.expanded is not False and item.children:
            rows.extend(flatten_with_depth(item.children, item.key, depth + 1))
    return rows


def is_descendant(older: NestedNode, younger: TreeNode) -> bool:
    """Return True if *younger* appears anywhere in *older*'s subtree."""
    for child in older.children or []:
        if child.key == younger.key:
            return True
        if is_descendant(child, younger):
            return True
    return False


def visible_count(nested: Sequence[NestedNode]) -> int:
    """Count nodes, excluding descendants of collapsed nodes."""
    count = 0
    for item in nested:
        count += 1
        if item.expanded is not False and item.children:
            count += visible_count(item.children)
    return count


def node_depth(node: TreeNode, flat: Sequence[TreeNode]) -> int:
    """Zero-based depth of *node* following parent keys through *flat*."""
    by_key = {item.key: item for item in flat}
    depth = 0
    seen = {node.key}
    current = node.parent
    while current and current in by_key and current not in seen:
        seen.add(current)
        depth += 1
        current = by_key[current].parent
    return depth


def node_with_descendants(node: TreeNode, flat: Sequence[TreeNode]) -> List[TreeNode]:
    """Return *node* followed by all of its descendants found in *flat*."""
    children_of: Dict[str, List[TreeNode]] = {}
    for item in flat:
        if item.parent:
            children_of.setdefault(item.parent, []).append(item)

    result: List[TreeNode] = [node]
    seen = {node.key}
    stack = list(reversed(children_of.get(node.key, [])))
    while stack:
        item = stack.pop()
        if item.key in seen:
            continue
        seen.add(item.key)
        result.append(item)
        stack.extend(reversed(children_of.get(item.key, [])))
    return result


def sibling_keys(flat: Sequence[TreeNode], key: str) -> List[str]:
    """Keys of the nodes sharing *key*'s effective parent, in list order.

    The effective parent follows the same rule as :func:`to_nested`: a parent
    key that does not resolve means root level. Returns an empty list when
    *key* is not in *flat*.
    """
    keys = {item.key for item in flat}
    effective = {
        item.key: (item.parent if item.parent in keys and item.parent != item.key else None)
        for item in flat
    }
    if key not in effective:
        return []
    parent = effective[key]
    return [item.key for item in flat if effective[item.key] == parent]
