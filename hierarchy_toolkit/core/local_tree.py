from __future__ import annotations

"""View-layer helpers around the nested tree.

Enriches stored nodes with the state of the documents they reference and with
local expand/collapse state, lists documents that can still be added, and
computes the display height of the tree. None of this is persisted.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from hierarchy_toolkit.core.models import DocumentPair, NestedNode, TreeNode
from hierarchy_toolkit.core.tree_codec import to_nested, visible_count
from hierarchy_toolkit.core.utils import generate_node_key

__all__ = [
    "VisibilityMap",
    "AllItems",
    "build_local_tree",
    "toggle_expanded",
    "get_unadded_items",
    "tree_height",
]

VisibilityMap = Dict[str, bool]
AllItems = Mapping[str, Optional[DocumentPair]]

_BASE_HEIGHT = 50


def build_local_tree(
    tree: Sequence[TreeNode],
    all_items: Optional[AllItems] = None,
    visibility: Optional[Mapping[str, bool]] = None,
) -> List[NestedNode]:
    """Build the nested tree the view renders.

    ``published_id``/``draft_id`` come from *all_items* (a missing
    ``published_id`` means the referenced document was deleted or no longer
    matches the candidate filters). ``expanded`` comes from *visibility* and
    defaults to True.
    """
    all_items = all_items or {}
    visibility = visibility or {}
    enhanced: List[NestedNode] = []
    for node in tree:
        pair = all_items.get(node.reference) if node.reference else None
        published = pair.published if pair else None
        draft = pair.draft if pair else None
        enhanced.append(
            NestedNode.from_node(
                node,
                expanded=visibility.get(node.key, True),
                published_id=published.get("_id") if published else None,
                draft_id=draft.get("_id") if draft else None,
            )
        )
    return to_nested(enhanced)


def toggle_expanded(visibility: Mapping[str, bool], key: str, expanded: bool) -> VisibilityMap:
    """Return a new visibility map with *key* set to *expanded*.

    Pure local state: the tree shape is not touched.
    """
    updated = dict(visibility)
    updated[key] = expanded
    return updated


def get_unadded_items(tree: Sequence[TreeNode], all_items: AllItems) -> List[NestedNode]:
    """Candidate nodes for published documents not yet referenced by *tree*.

    Plain set difference on reference ids, in *all_items* order. Documents
    without a published version are skipped. Each candidate gets a fresh key.
    """
    in_tree = {node.reference for node in tree if node.reference}
    candidates: List[NestedNode] = []
    for published_id, pair in all_items.items():
        if pair is None or pair.published is None or published_id in in_tree:
            continue
        candidates.append(
            NestedNode(
                key=generate_node_key(),
                reference=published_id,
                doc_type=pair.published.get("_type"),
                parent=None,
                published_id=published_id,
                draft_id=pair.draft.get("_id") if pair.draft else None,
            )
        )
    return candidates


def tree_height(nested: Sequence[NestedNode], row_height: int) -> str:
    """CSS height of the tree view for the currently visible rows."""
    return f"{_BASE_HEIGHT + row_height * visible_count(nested)}px"
