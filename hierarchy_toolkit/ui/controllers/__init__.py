"""Controllers mediating between host views and the tree services.

Controllers hold transient interaction state only and contain no UI toolkit
code.
"""

from .drag_controller import DragController, DragState, MoveResult  # noqa: F401
from .tree_editor_controller import TreeEditorController  # noqa: F401

__all__: list[str] = [
    "DragController",
    "DragState",
    "MoveResult",
    "TreeEditorController",
]
