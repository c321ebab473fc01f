from __future__ import annotations

"""Shared data structures used across the Hierarchy Toolkit core.

This package exposes dataclasses and value objects used by services and
controllers. It is intentionally free of UI / I/O code so that the contained
objects can be reused in any context (unit-tests, CLI, host integrations).

The persisted representation of a tree is a flat list of :class:`TreeNode`
objects linked by parent keys. :class:`NestedNode` is the transient view form
rebuilt from that list on every read.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Literal, Optional, Union

__all__ = [
    "INTERNAL_NODE_TYPE",
    "INTERNAL_NODE_VALUE_TYPE",
    "TreeNode",
    "NestedNode",
    "StaticTitle",
    "RendererTitle",
    "NodeTitle",
    "FlatItem",
    "FlattenedItem",
    "DragProjection",
    "HysteresisMemory",
    "PathInfo",
    "OperationKind",
    "TreeOperationMeta",
    "DocumentPair",
    "TreeChangeEvent",
]

INTERNAL_NODE_TYPE = "hierarchy.node"
INTERNAL_NODE_VALUE_TYPE = "hierarchy.node.value"

OperationKind = Literal["add", "remove", "move", "duplicate", "reorder"]


@dataclass
class TreeNode:
    """One entry of the persisted flat tree.

    Attributes
    ----------
    key
        Unique key within the tree.
    reference
        Published id of the referenced document, if any.
    doc_type
        Type of the referenced document.
    parent
        Key of the parent node, or None for root-level nodes. A key that does
        not resolve inside the same list is treated as root-level.
    node_type
        Stored ``_type`` of the node object.
    """

    key: str
    reference: Optional[str] = None
    doc_type: Optional[str] = None
    parent: Optional[str] = None
    node_type: str = INTERNAL_NODE_TYPE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreeNode":
        """Build a node from its stored document shape."""
        value = data.get("value") or {}
        reference = value.get("reference") or {}
        return cls(
            key=data["_key"],
            reference=reference.get("_ref") or None,
            doc_type=value.get("docType") or None,
            # Empty strings and missing parents both mean root-level
            parent=data.get("parent") or None,
            node_type=data.get("_type") or INTERNAL_NODE_TYPE,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored document shape."""
        value: Dict[str, Any] = {"_type": INTERNAL_NODE_VALUE_TYPE}
        if self.reference:
            value["reference"] = {"_type": "reference", "_ref": self.reference}
        if self.doc_type:
            value["docType"] = self.doc_type
        return {
            "_key": self.key,
            "_type": self.node_type,
            "value": value,
            "parent": self.parent,
        }

    def to_tree_node(self) -> "TreeNode":
        return TreeNode(
            key=self.key,
            reference=self.reference,
            doc_type=self.doc_type,
            parent=self.parent,
            node_type=self.node_type,
        )


@dataclass(frozen=True)
class StaticTitle:
    """Plain text node title."""

    text: str


@dataclass(frozen=True)
class RendererTitle:
    """Reference to a host-side renderer; resolved outside the core."""

    renderer: str


NodeTitle = Union[StaticTitle, RendererTitle]


@dataclass
class NestedNode(TreeNode):
    """A tree node decorated with its children, as used by the view layer.

    Built fresh from the flat list on every read and never persisted.
    ``published_id``/``draft_id`` and ``title`` are view-only decorations.
    """

    children: List["NestedNode"] = field(default_factory=list)
    expanded: bool = True
    published_id: Optional[str] = None
    draft_id: Optional[str] = None
    title: Optional[NodeTitle] = None

    @classmethod
    def from_node(cls, node: TreeNode, **overrides: Any) -> "NestedNode":
        """Copy *node* into a fresh NestedNode with empty children.

        View decorations of an existing NestedNode are carried over unless
        overridden.
        """
        values = {f.name: getattr(node, f.name) for f in fields(node) if f.name != "children"}
        values.update(overrides)
        values.setdefault("children", [])
        return cls(**values)


@dataclass
class FlatItem:
    """Pre-order traversal record produced by ``tree_codec.to_flat``."""

    node: NestedNode
    path: List[str]
    flat_index: int
    parent_node: Optional[NestedNode] = None


@dataclass
class FlattenedItem:
    """A visible row of the tree annotated with its depth."""

    node: NestedNode
    depth: int
    parent_key: Optional[str]
    index: int

    @property
    def key(self) -> str:
        return self.node.key


@dataclass(frozen=True)
class DragProjection:
    """Best-effort estimate of where a dragged node lands if released now."""

    depth: int
    parent_key: Optional[str]
    over_key: Optional[str]
    insert_position: Literal["before", "after"] = "after"
    insert_index: int = 0


@dataclass(frozen=True)
class HysteresisMemory:
    """Per-drag-session depth memory threaded through projections.

    Both depths are the projected depths before clamping; ``None`` means no
    projection has been computed yet in this session.
    """

    origin_depth: Optional[int] = None
    depth: Optional[int] = None


@dataclass
class PathInfo:
    """Position of one referenced document in the tree hierarchy."""

    doc_id: str
    doc_type: str
    ancestors: List[str]
    node_key: str
    parent_node_key: Optional[str]
    depth: int
    sibling_index: int
    slug: Optional[str] = None
    ancestor_slugs: Optional[List[str]] = None
    computed_path: Optional[str] = None


@dataclass(frozen=True)
class TreeOperationMeta:
    """Classification of one mutation, emitted alongside its patch batch."""

    operation: OperationKind
    node_keys: List[str]


@dataclass
class DocumentPair:
    """Draft and published versions of one document (plain dicts)."""

    draft: Optional[Dict[str, Any]] = None
    published: Optional[Dict[str, Any]] = None


@dataclass
class TreeChangeEvent:
    """Payload delivered to the change callback after a committed mutation."""

    tree_doc_id: str
    tree: List[TreeNode]
    operation: OperationKind
    affected_doc_ids: List[str]
    paths: List[PathInfo]
    removed_doc_ids: List[str] = field(default_factory=list)
