from __future__ import annotations

"""Depth/parent projection of a dragged node from pointer movement.

Given the visible rows of the tree (``tree_codec.flatten_with_depth``), the
dragged row, the row under the pointer and the horizontal pointer offset since
the drag started, :class:`ProjectionEngine` estimates where the dragged node
would land if it were released now.

Depth changes are damped by hysteresis: the projected depth only moves when
the pointer travels clearly past the current level, so single-pixel jitter
around a half-indent boundary never toggles the nesting level. The hysteresis
memory is explicit state passed into and returned from every projection.

Examples
--------
    engine = ProjectionEngine(indentation_width=44)
    projection, memory = engine.project(rows, "b", "c", offset=40.0)
    projection, memory = engine.project(rows, "b", "c", offset=52.0, memory=memory)
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple, TypeVar

from hierarchy_toolkit.core.models import DragProjection, FlattenedItem, HysteresisMemory

__all__ = ["ProjectionEngine", "array_move", "round_half_away"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INDENTATION_WIDTH = 44
DEFAULT_CHANGE_THRESHOLD = 0.65
DEFAULT_MAINTAIN_THRESHOLD = 0.35


def array_move(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """Return a copy of *items* with the element at *from_index* moved to *to_index*."""
    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class ProjectionEngine:
    """Computes :class:`DragProjection` values for an active drag.

    Parameters
    ----------
    indentation_width : float, default=44
        Width in pixels of one nesting level.
    change_threshold : float, default=0.65
        Fraction of one level the pointer must travel away from the current
        projected depth before a new depth is accepted.
    maintain_threshold : float, default=0.35
        Fraction of one level within which the pointer snaps back to the depth
        projected at the start of the drag session.
    """

    def __init__(
        self,
        indentation_width: float = DEFAULT_INDENTATION_WIDTH,
        change_threshold: float = DEFAULT_CHANGE_THRESHOLD,
        maintain_threshold: float = DEFAULT_MAINTAIN_THRESHOLD,
    ) -> None:
        if indentation_width <= 0:
            raise ValueError("indentation_width must be positive")
        self.indentation_width = indentation_width
        self.change_threshold = change_threshold
        self.maintain_threshold = maintain_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def project(
        self,
        items: Sequence[FlattenedItem],
        active_key: str,
        over_key: Optional[str],
        offset: float,
        memory: Optional[HysteresisMemory] = None,
    ) -> Tuple[DragProjection, HysteresisMemory]:
        """Project the landing position of *active_key* dropped over *over_key*.

        Returns the projection and the updated hysteresis memory. When either
        row is not visible a neutral projection (root, depth 0) is returned
        and the memory is left unchanged.
        """
        memory = memory or HysteresisMemory()
        keys = [item.key for item in items]
        if active_key not in keys or over_key not in keys:
            return DragProjection(depth=0, parent_key=None, over_key=over_key), memory

        active_index = keys.index(active_key)
        over_index = keys.index(over_key)
        active = items[active_index]

        # Simulate dropping the active row at the over row's position
        simulated = array_move(items, active_index, over_index)
        previous = simulated[over_index - 1] if over_index > 0 else None

        raw = offset / self.indentation_width
        projected = self._apply_hysteresis(active.depth, raw, memory)
        memory = HysteresisMemory(
            origin_depth=projected if memory.origin_depth is None else memory.origin_depth,
            depth=projected,
        )

        max_depth = previous.depth + 1 if previous is not None else 0
        depth = min(max(projected, 0), max_depth)
        parent_key = self._resolve_parent(simulated, over_index, previous, depth)

        if active_index > over_index:
            insert_position = "before"
        else:
            insert_position = "after"

        projection = DragProjection(
            depth=depth,
            parent_key=parent_key,
            over_key=over_key,
            insert_position=insert_position,
            insert_index=over_index,
        )
        logger.debug(
            "Projection active=%s over=%s raw=%.3f projected=%d depth=%d parent=%s",
            active_key, over_key, raw, projected, depth, parent_key,
        )
        return projection, memory

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_hysteresis(self, active_depth: int, raw: float, memory: HysteresisMemory) -> int:
        candidate = active_depth + round_half_away(raw)
        if memory.depth is None:
            return candidate

        delta = abs(raw - (memory.depth - active_depth))
        if delta > self.change_threshold:
            return candidate
        if memory.origin_depth is not None and abs(raw - (memory.origin_depth - active_depth)) < self.maintain_threshold:
            return memory.origin_depth
        return memory.depth

    @staticmethod
    def _resolve_parent(
        simulated: Sequence[FlattenedItem],
        over_index: int,
        previous: Optional[FlattenedItem],
        depth: int,
    ) -> Optional[str]:
        if depth == 0 or previous is None:
            return None
        if previous.depth + 1 == depth:
            return previous.key
        for index in range(over_index - 1, -1, -1):
            if simulated[index].depth == depth - 1:
                return simulated[index].key
        return None
