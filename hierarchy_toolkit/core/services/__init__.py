from __future__ import annotations

"""High-level services: tree operations, path metadata and change events."""

from .tree_operations_service import OperationResult, TreeOperationsService  # noqa: F401
from .path_service import compute_all_paths, get_affected_doc_ids  # noqa: F401
from .change_notification_service import ChangeNotifier  # noqa: F401

__all__: list[str] = [
    "OperationResult",
    "TreeOperationsService",
    "compute_all_paths",
    "get_affected_doc_ids",
    "ChangeNotifier",
]
