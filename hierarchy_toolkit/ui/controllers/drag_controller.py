from __future__ import annotations

"""Drag-and-drop lifecycle for the sortable tree.

The controller owns the transient state of one drag session (active row,
row under the pointer, horizontal offset, hysteresis memory) and turns a
release into a :class:`MoveResult` the operations service can translate into
patches. It contains no UI toolkit code: hosts forward pointer events.

States::

    IDLE -> DRAGGING -> PROJECTING* -> COMMITTING -> IDLE
                 \\___________\\______-> CANCELLED  -> IDLE
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, Dict, List, Optional, Sequence

from hierarchy_toolkit.core.models import (
    DragProjection,
    FlattenedItem,
    HysteresisMemory,
    NestedNode,
)
from hierarchy_toolkit.core.projection import ProjectionEngine, array_move
from hierarchy_toolkit.core.tree_codec import flatten_with_depth, is_descendant

__all__ = [
    "DragState",
    "DropPolicy",
    "MoveResult",
    "DragController",
    "prevent_cycles",
    "all_policies",
    "rebuild_tree",
]

logger = logging.getLogger(__name__)

DropPolicy = Callable[[NestedNode, Optional[NestedNode], int], bool]

_UNSET = object()


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    PROJECTING = "projecting"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


@dataclass
class MoveResult:
    """A committed drop, ready for ``TreeOperationsService.handle_moved_node``."""

    tree: List[NestedNode]
    node: NestedNode
    parent_key: Optional[str]
    next_parent_node: Optional[NestedNode]
    next_flat_index: int
    next_path: List[str]
    projection: DragProjection


def prevent_cycles(node: NestedNode, next_parent: Optional[NestedNode], depth: int) -> bool:
    """Reject drops onto the node itself or into one of its descendants."""
    if next_parent is None:
        return True
    if next_parent.key == node.key:
        return False
    return not is_descendant(node, next_parent)


def all_policies(*policies: Optional[DropPolicy]) -> DropPolicy:
    """Combine drop policies; a drop is allowed only if every policy allows it."""
    active = [policy for policy in policies if policy is not None]

    def combined(node: NestedNode, next_parent: Optional[NestedNode], depth: int) -> bool:
        return all(policy(node, next_parent, depth) for policy in active)

    return combined


def rebuild_tree(
    simulated: Sequence[FlattenedItem],
    active_key: str,
    new_parent_key: Optional[str],
) -> List[NestedNode]:
    """Rebuild the nested tree from rows in their post-drop visual order.

    Every row is cloned with empty children and reattached to its (possibly
    unchanged) parent in row order; the active row is reattached under
    *new_parent_key*. Collapsed nodes keep their hidden subtrees as-is.
    """
    by_key: Dict[str, NestedNode] = {}
    for row in simulated:
        hidden = list(row.node.children) if row.node.expanded is False else []
        parent = new_parent_key if row.key == active_key else row.parent_key
        by_key[row.key] = NestedNode.from_node(row.node, parent=parent, children=hidden)

    roots: List[NestedNode] = []
    for row in simulated:
        item = by_key[row.key]
        parent = by_key.get(item.parent) if item.parent else None
        if parent is not None:
            parent.children.append(item)
        else:
            roots.append(item)
    return roots


def _children_of(tree: Sequence[NestedNode], parent_key: Optional[str]) -> List[NestedNode]:
    if parent_key is None:
        return list(tree)
    stack = list(tree)
    while stack:
        node = stack.pop()
        if node.key == parent_key:
            return list(node.children)
        stack.extend(node.children)
    return []


class DragController:
    """State machine for one tree view's drag-and-drop interactions.

    Parameters
    ----------
    max_depth : int, optional
        Number of nesting levels allowed; drops at a zero-based depth
        ``>= max_depth`` are rejected. Unbounded when None.
    can_drop : callable, optional
        Host drop policy ``(node, next_parent, depth) -> bool``. It is always
        combined with :func:`prevent_cycles`.
    engine : ProjectionEngine, optional
        Projection engine (default geometry when omitted).

    Notes
    -----
    Rejected drops, and drops that leave the node under the same parent at
    the same sibling position, are silent no-ops: :meth:`end` returns None and
    the controller goes back to IDLE.
    """

    def __init__(
        self,
        max_depth: Optional[int] = None,
        can_drop: Optional[DropPolicy] = None,
        engine: Optional[ProjectionEngine] = None,
    ) -> None:
        self.max_depth = max_depth
        self._can_drop = all_policies(prevent_cycles, can_drop)
        self.engine = engine or ProjectionEngine()

        self.state = DragState.IDLE
        self._rows: List[FlattenedItem] = []
        self.active_key: Optional[str] = None
        self.over_key: Optional[str] = None
        self.offset: float = 0.0
        self.memory = HysteresisMemory()
        self.projection: Optional[DragProjection] = None

    # ---------------------------------------------------------------------------------
    # Pointer events
    # ---------------------------------------------------------------------------------

    def start(self, tree: Sequence[NestedNode], active_key: str) -> bool:
        """Begin dragging *active_key*; returns False if it is not a visible row."""
        rows = flatten_with_depth(tree)
        if not any(row.key == active_key for row in rows):
            logger.info("Drag noop: start unknown_node key=%s", active_key)
            return False
        self._reset()
        self._rows = rows
        self.active_key = active_key
        self.over_key = active_key
        self._reproject()
        self.state = DragState.DRAGGING
        logger.debug("Drag start key=%s", active_key)
        return True

    def move(self, offset: float) -> Optional[DragProjection]:
        """Pointer moved horizontally by *offset* pixels since drag start."""
        if not self.is_active:
            return None
        self.offset = offset
        return self._reproject()

    def over(self, over_key: Optional[str]) -> Optional[DragProjection]:
        """The pointer is now over *over_key* (None when over no row)."""
        if not self.is_active:
            return None
        self.over_key = over_key
        return self._reproject()

    def end(self, over_key: object = _UNSET) -> Optional[MoveResult]:
        """Release the pointer; returns the committed move, or None.

        *over_key* is the row under the pointer at release (None when the
        pointer is over no row); when omitted the last tracked row is used.
        """
        if not self.is_active:
            return None
        if over_key is not _UNSET:
            self.over_key = over_key
            self._reproject()

        self.state = DragState.COMMITTING
        try:
            return self._commit()
        finally:
            self._reset()

    def cancel(self) -> None:
        """Abort the drag; nothing is emitted."""
        if self.is_active:
            self.state = DragState.CANCELLED
            logger.debug("Drag cancelled key=%s", self.active_key)
        self._reset()

    @property
    def is_active(self) -> bool:
        return self.state in (DragState.DRAGGING, DragState.PROJECTING)

    def display_depth(self, key: str) -> Optional[int]:
        """Depth at which *key* should be drawn during the drag."""
        for row in self._rows:
            if row.key == key:
                if key == self.active_key and self.projection is not None:
                    return self.projection.depth
                return row.depth
        return None

    # ---------------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------------

    def _reproject(self) -> Optional[DragProjection]:
        if self.active_key is None or self.over_key is None:
            self.projection = None
            return None
        self.projection, self.memory = self.engine.project(
            self._rows, self.active_key, self.over_key, self.offset, self.memory
        )
        self.state = DragState.PROJECTING
        return self.projection

    def _commit(self) -> Optional[MoveResult]:
        projection = self.projection
        keys = [row.key for row in self._rows]
        if self.over_key is None or projection is None or self.over_key not in keys:
            logger.info("Drag noop: no_drop_target key=%s", self.active_key)
            return None

        active_index = keys.index(self.active_key)
        over_index = keys.index(self.over_key)
        active = self._rows[active_index].node
        next_parent = None
        if projection.parent_key is not None:
            next_parent = self._rows[keys.index(projection.parent_key)].node

        if self.max_depth is not None and projection.depth >= self.max_depth:
            logger.info("Drag noop: max_depth depth=%d max=%d key=%s", projection.depth, self.max_depth, active.key)
            return None
        if not self._can_drop(active, next_parent, projection.depth):
            logger.info("Drag noop: drop_rejected key=%s parent=%s", active.key, projection.parent_key)
            return None

        simulated = array_move(self._rows, active_index, over_index)
        tree = rebuild_tree(simulated, active.key, projection.parent_key)
        if self._unchanged(active_index, tree, projection.parent_key):
            logger.info("Drag noop: unchanged_position key=%s", active.key)
            return None
        next_path = [projection.parent_key, active.key] if projection.parent_key else [active.key]
        logger.info("Drag OK: key=%s parent=%s depth=%d", active.key, projection.parent_key, projection.depth)
        return MoveResult(
            tree=tree,
            node=active,
            parent_key=projection.parent_key,
            next_parent_node=next_parent,
            next_flat_index=over_index,
            next_path=next_path,
            projection=projection,
        )

    def _unchanged(self, active_index: int, tree: Sequence[NestedNode], parent_key: Optional[str]) -> bool:
        """True when the drop keeps the active row's parent and sibling order."""
        active = self._rows[active_index]
        if active.parent_key != parent_key:
            return False
        before = [row.key for row in self._rows if row.parent_key == parent_key]
        return before == [child.key for child in _children_of(tree, parent_key)]

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self._rows = []
        self.active_key = None
        self.over_key = None
        self.offset = 0.0
        self.memory = HysteresisMemory()
        self.projection = None
