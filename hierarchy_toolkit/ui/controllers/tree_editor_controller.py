from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import logging

from hierarchy_toolkit.core.local_tree import (
    build_local_tree,
    get_unadded_items,
    toggle_expanded,
    tree_height,
)
from hierarchy_toolkit.core.models import DocumentPair, DragProjection, NestedNode, TreeNode
from hierarchy_toolkit.core.models.editor_options import TreeEditorOptions
from hierarchy_toolkit.core.patches import PatchBatch, node_type_for, to_wire
from hierarchy_toolkit.core.projection import ProjectionEngine
from hierarchy_toolkit.core.services.change_notification_service import (
    ChangeNotifier,
    TransactionExecutor,
    TreeChangeCallback,
)
from hierarchy_toolkit.core.services.tree_operations_service import (
    OperationResult,
    TreeOperationsService,
)
from hierarchy_toolkit.ui.controllers.drag_controller import DragController, DropPolicy

logger = logging.getLogger(__name__)

PatchExecutor = Callable[[PatchBatch], Any]


class TreeEditorController:
    """Controller coordinating tree editor interactions with services.

    This controller keeps the last known-good tree snapshot and the local
    expand/collapse state, and delegates every structural edit to
    :class:`TreeOperationsService` and every drag to :class:`DragController`.
    It contains no UI toolkit code.

    Parameters
    ----------
    tree_doc_id : str
        Id of the document holding the tree.
    options : TreeEditorOptions
        Editor configuration.
    execute_patches : callable
        External executor receiving each :class:`PatchBatch`. Its failures are
        logged and never re-raised; local state is not rolled back because it
        is always derived from the next snapshot passed to :meth:`refresh`.
    notifier : ChangeNotifier, optional
        Receives the operation metadata and delivers change events. When
        omitted, one is built from *options* (see
        :meth:`ChangeNotifier.from_options`).
    on_tree_change : callable, optional
        Host callback for the notifier built from *options*.
    transaction : callable, optional
        ``inTree`` sync executor for the notifier built from *options*.
    can_drop : callable, optional
        Extra host drop policy.
    patch_prefix : str, optional
        Field path of the patches; defaults to ``options.field_key``. Pass an
        empty string when the tree is the whole value (form inputs).
    """

    def __init__(
        self,
        tree_doc_id: str,
        options: TreeEditorOptions,
        execute_patches: PatchExecutor,
        notifier: Optional[ChangeNotifier] = None,
        can_drop: Optional[DropPolicy] = None,
        patch_prefix: Optional[str] = None,
        on_tree_change: Optional[TreeChangeCallback] = None,
        transaction: Optional[TransactionExecutor] = None,
    ) -> None:
        self.tree_doc_id = tree_doc_id
        self.options = options
        if notifier is None:
            notifier = ChangeNotifier.from_options(
                tree_doc_id, options, on_tree_change=on_tree_change, transaction=transaction
            )
        self.notifier = notifier
        self.node_type = node_type_for(options.document_type)
        self._execute_patches = execute_patches

        self.operations = TreeOperationsService(
            patch_prefix=patch_prefix if patch_prefix is not None else options.field_key,
            on_change=self._dispatch,
        )
        self.drag = DragController(
            max_depth=options.max_depth,
            can_drop=can_drop,
            engine=ProjectionEngine(
                indentation_width=options.indentation_width,
                change_threshold=options.change_threshold,
                maintain_threshold=options.maintain_threshold,
            ),
        )

        # Last snapshot received from the backend and local view state
        self.tree: List[TreeNode] = []
        self.all_items: Dict[str, Optional[DocumentPair]] = {}
        self.visibility: Dict[str, bool] = {}
        self.local_tree: List[NestedNode] = []
        self.height: str = tree_height([], options.row_height)

    # ---------------------------------------------------------------------------------
    # Snapshots
    # ---------------------------------------------------------------------------------

    def load(self, tree: Sequence[TreeNode], all_items: Optional[Mapping[str, Optional[DocumentPair]]] = None) -> None:
        """Initial snapshot; establishes the removal baseline without notifying."""
        self.all_items = dict(all_items or {})
        self.tree = list(tree)
        self.notifier.reset_snapshot(self.tree)
        self._recompute()

    def refresh(self, tree: Sequence[TreeNode], all_items: Optional[Mapping[str, Optional[DocumentPair]]] = None) -> None:
        """A new snapshot arrived (typically after a batch was applied)."""
        if all_items is not None:
            self.all_items = dict(all_items)
        self.tree = list(tree)
        self._recompute()
        self.notifier.tree_updated(self.tree, self.all_items)

    @property
    def unadded_items(self) -> List[NestedNode]:
        return get_unadded_items(self.tree, self.all_items)

    # ---------------------------------------------------------------------------------
    # Operations
    # ---------------------------------------------------------------------------------

    def add_item(self, candidate: TreeNode) -> OperationResult:
        return self.operations.add_item(self.tree, candidate)

    def remove_item(self, key: str) -> OperationResult:
        return self.operations.remove_item(self.tree, key)

    def duplicate_item(self, key: str) -> OperationResult:
        return self.operations.duplicate_item(self.tree, key)

    def move_item_up(self, key: str) -> OperationResult:
        return self.operations.move_item_up(self.tree, key)

    def move_item_down(self, key: str) -> OperationResult:
        return self.operations.move_item_down(self.tree, key)

    def toggle(self, key: str) -> None:
        """Flip the expanded state of one node (non-structural)."""
        current = self.visibility.get(key, True)
        self.visibility = toggle_expanded(self.visibility, key, not current)
        self._recompute()

    # ---------------------------------------------------------------------------------
    # Drag and drop
    # ---------------------------------------------------------------------------------

    def begin_drag(self, key: str) -> bool:
        node = self._find_local(key)
        # Nodes whose document is gone cannot be dragged
        if node is None or not node.published_id:
            return False
        return self.drag.start(self.local_tree, key)

    def drag_move(self, offset: float) -> Optional[DragProjection]:
        return self.drag.move(offset)

    def drag_over(self, over_key: Optional[str]) -> Optional[DragProjection]:
        return self.drag.over(over_key)

    def drag_end(self, *args: Any) -> Optional[OperationResult]:
        """Release the drag; ``drag_end(over_key)`` overrides the tracked row."""
        moved = self.drag.end(*args)
        if moved is None:
            return None
        return self.operations.handle_moved_node(moved)

    def drag_cancel(self) -> None:
        self.drag.cancel()

    def to_wire(self, batch: PatchBatch) -> List[Dict[str, Any]]:
        """Render *batch* as mutations for the configured document type."""
        return to_wire(batch.patches, node_type=self.node_type)

    # ---------------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------------

    def _dispatch(self, batch: PatchBatch) -> None:
        self.notifier.record_operation(batch.meta)
        try:
            self._execute_patches(batch)
        except Exception as exc:
            logger.error("[hierarchy-toolkit] patch execution error: %s", exc, exc_info=True)
            self.notifier.discard_operation()

    def _recompute(self) -> None:
        self.local_tree = build_local_tree(self.tree, self.all_items, self.visibility)
        self.height = tree_height(self.local_tree, self.options.row_height)

    def _find_local(self, key: str) -> Optional[NestedNode]:
        stack = list(self.local_tree)
        while stack:
            node = stack.pop()
            if node.key == key:
                return node
            stack.extend(node.children)
        return None
