from __future__ import annotations

"""Service layer translating tree operations into patch batches.

This module provides a UI-agnostic, testable service that turns high-level
tree operations (add, remove, duplicate, reorder, drag-and-drop move) into the
smallest ordered batch of patch primitives that keeps the persisted flat
parent-pointer list consistent.

Scope and guarantees:
- Operates purely on the flat list passed to each call; no I/O, no UI imports,
  no state owned between calls.
- Invalid operations return OperationResult(success=False, ...) with clear
  messaging, never raise.
- Every batch starts with an EnsureField guard so it can be applied to a field
  that has never been written, and every patch is prefixed with the configured
  field path.

Examples
--------
Basic usage:

    service = TreeOperationsService(patch_prefix="tree")
    result = service.move_item_up(tree, "node-key")
    if result.success:
        executor(result.batch.patches)

"""

from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from hierarchy_toolkit.core.models import NestedNode, TreeNode, TreeOperationMeta
from hierarchy_toolkit.core.patches import (
    EnsureField,
    InsertNode,
    Patch,
    PatchBatch,
    RemoveNode,
    SetParent,
    prefix_patch,
)
from hierarchy_toolkit.core.tree_codec import sibling_keys
from hierarchy_toolkit.core.utils import generate_node_key

__all__ = ["OperationResult", "TreeOperationsService"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """Result of a tree operation.

    Attributes
    ----------
    success
        Whether the operation produced patches.
    message
        Human-readable summary suitable for logs or UI display.
    batch
        The patch batch to apply, present only on success.
    details
        Optional structured details for diagnostics or caller logic.
    """
    success: bool
    message: str
    batch: Optional[PatchBatch] = None
    details: Optional[Dict[str, Any]] = None


class TreeOperationsService:
    """Builds patch batches for structural edits of a flat tree.

    Parameters
    ----------
    patch_prefix : str, optional
        Document field holding the tree. When unset, patches address the tree
        value itself (e.g. a form input whose value is the tree).
    on_change : callable, optional
        Receives every successful :class:`PatchBatch`. Failures raised by the
        callback are logged and never propagated.

    Notes
    -----
    Removing a node promotes its direct children to the removed node's former
    parent, preserving their relative order, so no subtree is silently lost.
    """

    def __init__(
        self,
        patch_prefix: Optional[str] = None,
        on_change: Optional[Callable[[PatchBatch], None]] = None,
    ) -> None:
        self._patch_prefix = patch_prefix
        self._on_change = on_change

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def add_item(self, tree: Sequence[TreeNode], candidate: TreeNode) -> OperationResult:
        """Append a node referencing *candidate* at the end of the root level."""
        logger.info("Edit: add_item key=%s ref=%s", candidate.key, candidate.reference)
        if not candidate.reference:
            logger.info("Edit noop: add_item missing_reference key=%s", candidate.key)
            return OperationResult(False, "Candidate has no document reference.", details={"key": candidate.key})
        if any(node.reference == candidate.reference for node in tree):
            logger.info("Edit noop: add_item already_in_tree ref=%s", candidate.reference)
            return OperationResult(False, "Document is already in the tree.", details={"reference": candidate.reference})
        if any(node.key == candidate.key for node in tree):
            logger.warning("Edit FAIL: add_item duplicate_key key=%s", candidate.key)
            return OperationResult(False, f"Key '{candidate.key}' is already used.", details={"key": candidate.key})

        node = candidate.to_tree_node()
        node.parent = None
        return self._run(
            [InsertNode(node=node, position="after", anchor_key=None)],
            TreeOperationMeta(operation="add", node_keys=[node.key]),
            "Added item.",
        )

    def remove_item(self, tree: Sequence[TreeNode], key: str) -> OperationResult:
        """Remove a node, promoting its direct children to its former parent."""
        logger.info("Edit: remove_item key=%s", key)
        node = self._find(tree, key)
        if node is None:
            logger.warning("Edit FAIL: remove_item node_not_found key=%s", key)
            return OperationResult(False, f"Node not found for key '{key}'.", details={"key": key})

        new_parent = node.parent if self._find(tree, node.parent) is not None else None
        patches: List[Patch] = [
            SetParent(key=child.key, parent=new_parent)
            for child in tree
            if child.parent == key and child.key != key
        ]
        patches.append(RemoveNode(key=key))
        return self._run(
            patches,
            TreeOperationMeta(operation="remove", node_keys=[key]),
            "Removed item.",
            details={"promoted": len(patches) - 1},
        )

    def duplicate_item(self, tree: Sequence[TreeNode], key: str) -> OperationResult:
        """Insert a copy of a node right after it, without its descendants."""
        logger.info("Edit: duplicate_item key=%s", key)
        node = self._find(tree, key)
        if node is None:
            logger.warning("Edit FAIL: duplicate_item node_not_found key=%s", key)
            return OperationResult(False, f"Node not found for key '{key}'.", details={"key": key})

        existing = {item.key for item in tree}
        clone = node.to_tree_node()
        clone.key = generate_node_key()
        while clone.key in existing:
            clone.key = generate_node_key()
        return self._run(
            [InsertNode(node=clone, position="after", anchor_key=key)],
            TreeOperationMeta(operation="duplicate", node_keys=[key, clone.key]),
            "Duplicated item.",
            details={"clone_key": clone.key},
        )

    def move_item_up(self, tree: Sequence[TreeNode], key: str) -> OperationResult:
        return self._move_item(tree, key, "up")

    def move_item_down(self, tree: Sequence[TreeNode], key: str) -> OperationResult:
        return self._move_item(tree, key, "down")

    def handle_moved_node(self, moved: Any) -> OperationResult:
        """Translate a committed drag (``DragController`` MoveResult) into patches.

        The moved node keeps its place in the flat list when it has no
        siblings under its new parent; otherwise it is re-inserted next to its
        new neighbour so sibling order matches the rebuilt tree.
        """
        node: NestedNode = moved.node
        parent_key: Optional[str] = moved.parent_key
        logger.info("Edit: move key=%s parent=%s", node.key, parent_key)

        siblings = self._children_of(moved.tree, parent_key)
        keys = [child.key for child in siblings]
        if node.key not in keys:
            logger.warning("Edit FAIL: move node_not_in_result key=%s", node.key)
            return OperationResult(False, "Moved node is missing from the rebuilt tree.", details={"key": node.key})

        index = keys.index(node.key)
        stored = node.to_tree_node()
        stored.parent = parent_key
        if index > 0:
            patches: List[Patch] = [
                RemoveNode(key=node.key),
                InsertNode(node=stored, position="after", anchor_key=keys[index - 1]),
            ]
        elif index + 1 < len(keys):
            patches = [
                RemoveNode(key=node.key),
                InsertNode(node=stored, position="before", anchor_key=keys[index + 1]),
            ]
        else:
            patches = [SetParent(key=node.key, parent=parent_key)]
        return self._run(
            patches,
            TreeOperationMeta(operation="move", node_keys=[node.key]),
            "Moved item.",
            details={"parent_key": parent_key, "sibling_index": index},
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _move_item(self, tree: Sequence[TreeNode], key: str, direction: Literal["up", "down"]) -> OperationResult:
        logger.info("Edit: move_item direction=%s key=%s", direction, key)
        node = self._find(tree, key)
        if node is None:
            logger.warning("Edit FAIL: move_item node_not_found key=%s", key)
            return OperationResult(False, f"Node not found for key '{key}'.", details={"key": key})

        siblings = sibling_keys(tree, key)
        index = siblings.index(key)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(siblings):
            logger.info("Edit noop: move_item direction=%s boundary key=%s", direction, key)
            return OperationResult(False, f"Cannot move {direction} (at boundary).", details={"key": key})

        patches: List[Patch] = [
            RemoveNode(key=key),
            InsertNode(
                node=node.to_tree_node(),
                position="before" if direction == "up" else "after",
                anchor_key=siblings[target],
            ),
        ]
        return self._run(
            patches,
            TreeOperationMeta(operation="reorder", node_keys=[key]),
            f"Moved item {direction}.",
        )

    def _run(
        self,
        patches: List[Patch],
        meta: TreeOperationMeta,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> OperationResult:
        """Guard, prefix and dispatch *patches* as one batch."""
        final: List[Patch] = [EnsureField()] + list(patches)
        if self._patch_prefix:
            final = [prefix_patch(patch, self._patch_prefix) for patch in final]
        batch = PatchBatch(patches=tuple(final), meta=meta)
        logger.info("Edit OK: %s keys=%s patches=%d", meta.operation, ",".join(meta.node_keys), len(batch))

        if self._on_change is not None:
            try:
                self._on_change(batch)
            except Exception as exc:
                logger.error("[hierarchy-toolkit] patch dispatch error: %s", exc, exc_info=True)
        return OperationResult(True, message, batch, details)

    @staticmethod
    def _find(tree: Sequence[TreeNode], key: Optional[str]) -> Optional[TreeNode]:
        if not key:
            return None
        for node in tree:
            if node.key == key:
                return node
        return None

    @staticmethod
    def _children_of(nested: Sequence[NestedNode], parent_key: Optional[str]) -> List[NestedNode]:
        if parent_key is None:
            return list(nested)
        stack = list(nested)
        while stack:
            item = stack.pop()
            if item.key == parent_key:
                return list(item.children)
            stack.extend(item.children)
        return []
