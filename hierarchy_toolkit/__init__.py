"""Top-level package for Hierarchy Toolkit.

Tree editing core for hierarchical document lists: conversion between the
persisted flat parent-pointer list and the nested view, drag-and-drop
projection, patch translation and derived path metadata. Hosts should depend
on the public API exposed here rather than importing internal modules
directly.
"""

from .core.models import NestedNode, PathInfo, TreeNode, TreeOperationMeta  # re-export for convenience
from .core.models.editor_options import TreeEditorOptions
from .core.tree_codec import to_flat, to_nested

__all__: list[str] = [
    "NestedNode",
    "PathInfo",
    "TreeEditorOptions",
    "TreeNode",
    "TreeOperationMeta",
    "to_flat",
    "to_nested",
]
