from __future__ import annotations

"""Derived change events delivered after committed tree mutations.

After the backend applied a patch batch, the host hands the new flat tree to
:class:`ChangeNotifier`. The notifier pairs it with the pending
:class:`TreeOperationMeta`, computes the affected/removed documents and the
full path metadata, and delivers one :class:`TreeChangeEvent` to the host
callback.

Design principles
-----------------
- The previous snapshot and the pending operation are explicit state of the
  notifier instance; the pure helpers take them as parameters.
- Delivery is fire-and-forget on a daemon thread. Coroutine callbacks are run
  to completion inside that thread.
- Collaborator failures (callback, in-tree sync transaction) are logged with
  the ``[hierarchy-toolkit]`` prefix and never propagated.
"""

from dataclasses import dataclass
import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Set, Union

from hierarchy_toolkit.core.models import (
    DocumentPair,
    TreeChangeEvent,
    TreeNode,
    TreeOperationMeta,
)
from hierarchy_toolkit.core.models.editor_options import TreeEditorOptions
from hierarchy_toolkit.core.services.path_service import (
    SlugField,
    compute_all_paths,
    get_affected_doc_ids,
)

__all__ = [
    "DocumentFieldPatch",
    "ChangeNotifier",
    "doc_ids_in_tree",
    "removed_doc_ids",
    "build_change_event",
    "in_tree_sync_patches",
    "deliver_change_event",
]

logger = logging.getLogger(__name__)

TreeChangeCallback = Callable[[TreeChangeEvent], Union[None, Awaitable[None]]]
TransactionExecutor = Callable[[List["DocumentFieldPatch"]], Any]


@dataclass(frozen=True)
class DocumentFieldPatch:
    """Set ``field`` to ``value`` on the document ``doc_id``."""

    doc_id: str
    field: str
    value: Any

    def to_wire(self) -> dict:
        return {"patch": {"id": self.doc_id, "set": {self.field: self.value}}}


def doc_ids_in_tree(tree: Iterable[TreeNode]) -> Set[str]:
    return {node.reference for node in tree if node.reference}


def removed_doc_ids(previous: Iterable[str], current: Iterable[TreeNode]) -> List[str]:
    """Document ids present in *previous* but no longer referenced by *current*."""
    still_there = doc_ids_in_tree(current)
    return [doc_id for doc_id in previous if doc_id not in still_there]


def build_change_event(
    tree_doc_id: str,
    tree: Sequence[TreeNode],
    meta: TreeOperationMeta,
    previous_doc_ids: Iterable[str] = (),
    all_items: Optional[Mapping[str, Optional[DocumentPair]]] = None,
    slug_field: Optional[SlugField] = None,
    path_separator: str = "/",
) -> TreeChangeEvent:
    """Assemble the event payload for one committed mutation."""
    return TreeChangeEvent(
        tree_doc_id=tree_doc_id,
        tree=list(tree),
        operation=meta.operation,
        affected_doc_ids=get_affected_doc_ids(tree, meta.node_keys),
        paths=compute_all_paths(tree, all_items, slug_field, path_separator),
        removed_doc_ids=removed_doc_ids(previous_doc_ids, tree),
    )


def in_tree_sync_patches(
    current: Iterable[TreeNode],
    removed: Iterable[str],
    field: str,
) -> List[DocumentFieldPatch]:
    """Membership flag patches: True for documents in the tree, False for removed ones."""
    patches = [DocumentFieldPatch(doc_id, field, True) for doc_id in sorted(doc_ids_in_tree(current))]
    patches.extend(DocumentFieldPatch(doc_id, field, False) for doc_id in removed)
    return patches


def _run_callback(callback: TreeChangeCallback, event: TreeChangeEvent) -> None:
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            asyncio.run(_await(result))
    except Exception as exc:
        logger.error("[hierarchy-toolkit] onTreeChange error: %s", exc, exc_info=True)


async def _await(awaitable: Awaitable[None]) -> None:
    await awaitable


def deliver_change_event(
    callback: TreeChangeCallback,
    event: TreeChangeEvent,
    background: bool = True,
) -> Optional[threading.Thread]:
    """Invoke *callback* with *event* without letting failures escape.

    Returns the delivery thread when *background* is True so callers (tests)
    may join it; the core itself never waits for delivery.
    """
    if not background:
        _run_callback(callback, event)
        return None
    thread = threading.Thread(target=_run_callback, args=(callback, event), daemon=True)
    thread.start()
    return thread


class ChangeNotifier:
    """Tracks pending operations and emits change events for a tree document.

    Parameters
    ----------
    tree_doc_id : str
        Id of the document holding the tree.
    on_tree_change : callable, optional
        Host callback receiving :class:`TreeChangeEvent` (sync or async).
    enabled : bool, default=True
        Master switch for the callback.
    slug_field, path_separator
        Slug path configuration forwarded to ``compute_all_paths``.
    in_tree_field : str, optional
        Document field flagging membership in the tree.
    auto_sync_in_tree : bool, default=False
        When True (and ``in_tree_field`` and ``transaction`` are set), keep
        the membership flag of referenced documents in sync after each
        mutation, even without a callback.
    transaction : callable, optional
        Executes a list of :class:`DocumentFieldPatch` as one transaction.
    background : bool, default=True
        Deliver callbacks on a daemon thread.
    """

    def __init__(
        self,
        tree_doc_id: str,
        on_tree_change: Optional[TreeChangeCallback] = None,
        enabled: bool = True,
        slug_field: Optional[SlugField] = None,
        path_separator: str = "/",
        in_tree_field: Optional[str] = None,
        auto_sync_in_tree: bool = False,
        transaction: Optional[TransactionExecutor] = None,
        background: bool = True,
    ) -> None:
        self.tree_doc_id = tree_doc_id
        self._on_tree_change = on_tree_change
        self._enabled = enabled
        self._slug_field = slug_field
        self._path_separator = path_separator
        self._in_tree_field = in_tree_field
        self._auto_sync_in_tree = auto_sync_in_tree
        self._transaction = transaction
        self._background = background

        self.pending: Optional[TreeOperationMeta] = None
        self.previous_doc_ids: Set[str] = set()
        self.last_thread: Optional[threading.Thread] = None

    @classmethod
    def from_options(
        cls,
        tree_doc_id: str,
        options: TreeEditorOptions,
        on_tree_change: Optional[TreeChangeCallback] = None,
        transaction: Optional[TransactionExecutor] = None,
        background: bool = True,
    ) -> "ChangeNotifier":
        """Build a notifier configured by the editor options."""
        return cls(
            tree_doc_id,
            on_tree_change=on_tree_change,
            enabled=options.enable_tree_change_callback,
            slug_field=options.slug_field,
            path_separator=options.path_separator,
            in_tree_field=options.in_tree_field,
            auto_sync_in_tree=options.auto_sync_in_tree,
            transaction=transaction,
            background=background,
        )

    def record_operation(self, meta: TreeOperationMeta) -> None:
        """Remember *meta* until the resulting tree is reported back."""
        self.pending = meta

    def discard_operation(self) -> None:
        """Forget the pending operation (its batch was never committed)."""
        self.pending = None

    def reset_snapshot(self, tree: Iterable[TreeNode]) -> None:
        """Use *tree* as the baseline for removal detection."""
        self.previous_doc_ids = doc_ids_in_tree(tree)

    def tree_updated(
        self,
        tree: Sequence[TreeNode],
        all_items: Optional[Mapping[str, Optional[DocumentPair]]] = None,
    ) -> Optional[TreeChangeEvent]:
        """Process a new tree snapshot; returns the delivered event, if any.

        Runs once per committed mutation: the pending operation is consumed.
        Snapshots arriving without a pending operation (e.g. remote edits) only
        refresh the removal baseline.
        """
        previous = self.previous_doc_ids
        removed = removed_doc_ids(previous, tree)
        self.previous_doc_ids = doc_ids_in_tree(tree)

        meta = self.pending
        if meta is None:
            return None
        self.pending = None

        if self._auto_sync_in_tree and self._in_tree_field and self._transaction is not None:
            self._sync_in_tree(tree, removed)

        if not self._enabled or self._on_tree_change is None:
            return None

        event = build_change_event(
            self.tree_doc_id,
            tree,
            meta,
            previous_doc_ids=previous,
            all_items=all_items,
            slug_field=self._slug_field,
            path_separator=self._path_separator,
        )
        self.last_thread = deliver_change_event(self._on_tree_change, event, background=self._background)
        return event

    def _sync_in_tree(self, tree: Sequence[TreeNode], removed: List[str]) -> None:
        patches = in_tree_sync_patches(tree, removed, self._in_tree_field)
        try:
            self._transaction(patches)
            logger.info("In-tree sync committed: %d documents", len(patches))
        except Exception as exc:
            logger.error("[hierarchy-toolkit] Auto-sync inTree error: %s", exc, exc_info=True)
