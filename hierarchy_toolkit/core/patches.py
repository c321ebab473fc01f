from __future__ import annotations

"""Patch primitives emitted for tree mutations.

A batch is an ordered tuple of primitives over the tree field and must be
applied in emitted order, atomically:

- :class:`EnsureField`  initialise the tree sequence if it was never written
- :class:`InsertNode`   insert a node before/after an anchor key (or append)
- :class:`RemoveNode`   remove a node by key
- :class:`SetParent`    set ``node.parent``

Every primitive carries a ``path`` prefix locating the sequence inside the
document; an empty path means the target *is* the sequence. The same
operation logic therefore works whether the tree is the whole value or one
field of a document (see :func:`prefix_patch`).

:func:`to_wire` renders primitives as Sanity-style mutation dicts and
:func:`apply_patches` is a reference in-memory executor.
"""

import copy
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from hierarchy_toolkit.core.models import INTERNAL_NODE_TYPE, TreeNode, TreeOperationMeta
from hierarchy_toolkit.core.models.editor_options import DEFAULT_DOC_TYPE

__all__ = [
    "PatchError",
    "EnsureField",
    "InsertNode",
    "RemoveNode",
    "SetParent",
    "Patch",
    "PatchBatch",
    "prefix_patch",
    "node_type_for",
    "to_wire",
    "apply_patches",
]

logger = logging.getLogger(__name__)

PathSegments = Tuple[str, ...]


class PatchError(ValueError):
    """Raised when a patch cannot be applied to the given target."""


@dataclass(frozen=True)
class EnsureField:
    path: PathSegments = ()


@dataclass(frozen=True)
class InsertNode:
    """Insert *node* before/after *anchor_key*; no anchor means the end."""

    node: TreeNode
    position: Literal["before", "after"] = "after"
    anchor_key: Optional[str] = None
    path: PathSegments = ()


@dataclass(frozen=True)
class RemoveNode:
    key: str
    path: PathSegments = ()


@dataclass(frozen=True)
class SetParent:
    key: str
    parent: Optional[str]
    path: PathSegments = ()


Patch = Union[EnsureField, InsertNode, RemoveNode, SetParent]


@dataclass(frozen=True)
class PatchBatch:
    """Ordered patches of one operation plus its classification."""

    patches: Tuple[Patch, ...]
    meta: TreeOperationMeta

    def __len__(self) -> int:
        return len(self.patches)


def prefix_patch(patch: Patch, segment: str) -> Patch:
    """Return *patch* relocated under the document field *segment*."""
    return replace(patch, path=(segment,) + tuple(patch.path))


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------


def _path_expr(path: PathSegments, key: Optional[str] = None, attr: Optional[str] = None) -> str:
    expr = ".".join(path)
    if key is not None:
        expr = f'{expr}[_key=="{key}"]'
    if attr:
        expr = f"{expr}.{attr}"
    return expr


def node_type_for(document_type: str) -> str:
    """Node ``_type`` used for trees stored in *document_type* documents."""
    if not document_type or document_type == DEFAULT_DOC_TYPE:
        return INTERNAL_NODE_TYPE
    return f"{document_type}.node"


def to_wire(patches: Sequence[Patch], node_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Render primitives as Sanity-style mutation dicts.

    Inserted nodes are stamped with *node_type* as their ``_type`` when given,
    and their value with ``<node_type>.value``.
    """
    wire: List[Dict[str, Any]] = []
    for patch in patches:
        if isinstance(patch, EnsureField):
            if patch.path:
                wire.append({"setIfMissing": {".".join(patch.path): []}})
            else:
                wire.append({"setIfMissing": []})
        elif isinstance(patch, InsertNode):
            item = patch.node.to_dict()
            if node_type:
                item["_type"] = node_type
                if isinstance(item.get("value"), dict):
                    item["value"]["_type"] = f"{node_type}.value"
            if patch.anchor_key is None:
                location = f"{'.'.join(patch.path)}[-1]"
                position = "after"
            else:
                location = _path_expr(patch.path, key=patch.anchor_key)
                position = patch.position
            wire.append({"insert": {position: location, "items": [item]}})
        elif isinstance(patch, RemoveNode):
            wire.append({"unset": [_path_expr(patch.path, key=patch.key)]})
        elif isinstance(patch, SetParent):
            wire.append({"set": {_path_expr(patch.path, key=patch.key, attr="parent"): patch.parent}})
        else:
            raise PatchError(f"Unsupported patch type: {type(patch).__name__}")
    return wire


# ---------------------------------------------------------------------------
# Reference executor
# ---------------------------------------------------------------------------


def _index_of(sequence: List[TreeNode], key: str) -> int:
    for index, node in enumerate(sequence):
        if node.key == key:
            return index
    raise PatchError(f"No node with key '{key}'")


def _locate(root: Any, path: PathSegments, create: bool) -> Tuple[Any, List[TreeNode]]:
    """Return ``(root, sequence)`` for *path*, creating the sequence if asked."""
    if not path:
        if root is None:
            if not create:
                raise PatchError("Tree field does not exist")
            root = []
        return root, root

    container = root
    if container is None:
        raise PatchError("Document does not exist")
    for segment in path[:-1]:
        if not isinstance(container, dict):
            raise PatchError(f"Cannot descend into '{segment}'")
        container = container.setdefault(segment, {}) if create else container.get(segment)
    if not isinstance(container, dict):
        raise PatchError(f"Cannot resolve path {'.'.join(path)}")
    if container.get(path[-1]) is None:
        if not create:
            raise PatchError(f"Tree field '{'.'.join(path)}' does not exist")
        container[path[-1]] = []
    return root, container[path[-1]]


def apply_patches(target: Any, patches: Sequence[Patch]) -> Any:
    """Apply *patches* to a copy of *target* and return the result.

    *target* is a list of :class:`TreeNode` (unprefixed patches) or a dict
    document holding such a list at the patch path. The input is never
    mutated: either the whole batch applies or :class:`PatchError` is raised.
    """
    root = copy.deepcopy(target)
    for patch in patches:
        root, sequence = _locate(root, patch.path, create=isinstance(patch, EnsureField))
        if isinstance(patch, EnsureField):
            continue
        if isinstance(patch, InsertNode):
            if any(node.key == patch.node.key for node in sequence):
                raise PatchError(f"Duplicate key '{patch.node.key}'")
            node = copy.deepcopy(patch.node)
            if patch.anchor_key is None:
                sequence.append(node)
            else:
                index = _index_of(sequence, patch.anchor_key)
                sequence.insert(index if patch.position == "before" else index + 1, node)
        elif isinstance(patch, RemoveNode):
            del sequence[_index_of(sequence, patch.key)]
        elif isinstance(patch, SetParent):
            sequence[_index_of(sequence, patch.key)].parent = patch.parent
        else:
            raise PatchError(f"Unsupported patch type: {type(patch).__name__}")
    logger.debug("Applied %d patches", len(patches))
    return root
