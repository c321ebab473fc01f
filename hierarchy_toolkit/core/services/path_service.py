from __future__ import annotations

"""Hierarchy metadata derived from the flat tree.

Paths are always recomputed in full after a committed mutation: any structural
change can shift depth, sibling index or ancestor chains of unrelated
subtrees, so partial updates are never attempted.
"""

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from hierarchy_toolkit.core.models import DocumentPair, NestedNode, PathInfo, TreeNode
from hierarchy_toolkit.core.tree_codec import to_nested
from hierarchy_toolkit.core.utils import get_by_dotted_path, normalize_slug

__all__ = ["compute_all_paths", "get_affected_doc_ids", "extract_slug"]

logger = logging.getLogger(__name__)

SlugField = Union[str, Callable[[dict], Optional[str]]]


def extract_slug(pair: Optional[DocumentPair], slug_field: SlugField) -> Optional[str]:
    """Extract a slug from the published (preferred) or draft document."""
    if pair is None:
        return None
    document = pair.published or pair.draft
    if document is None:
        return None
    if callable(slug_field):
        value = slug_field(document)
    else:
        value = get_by_dotted_path(document, slug_field)
    return normalize_slug(value)


def compute_all_paths(
    tree: Sequence[TreeNode],
    items_by_doc_id: Optional[Mapping[str, Optional[DocumentPair]]] = None,
    slug_field: Optional[SlugField] = None,
    path_separator: str = "/",
) -> List[PathInfo]:
    """Compute a :class:`PathInfo` for every node referencing a document.

    Nodes without a reference are skipped, but their children are still
    visited with the unchanged ancestor chain. Slug fields are only filled in
    when *slug_field* is configured.
    """
    with_slugs = slug_field is not None
    items_by_doc_id = items_by_doc_id or {}
    paths: List[PathInfo] = []

    def traverse(
        nodes: Sequence[NestedNode],
        parent_key: Optional[str],
        ancestors: List[str],
        slugs: List[str],
        depth: int,
    ) -> None:
        for sibling_index, node in enumerate(nodes):
            doc_id = node.reference
            slug = None
            if doc_id and with_slugs:
                slug = extract_slug(items_by_doc_id.get(doc_id), slug_field)

            if doc_id:
                info = PathInfo(
                    doc_id=doc_id,
                    doc_type=node.doc_type or "unknown",
                    ancestors=list(ancestors),
                    node_key=node.key,
                    parent_node_key=parent_key,
                    depth=depth,
                    sibling_index=sibling_index,
                )
                if with_slugs:
                    segments = slugs + ([slug] if slug else [])
                    info.slug = slug
                    info.ancestor_slugs = list(slugs)
                    info.computed_path = path_separator + path_separator.join(segments) if segments else path_separator
                paths.append(info)

            if node.children:
                traverse(
                    node.children,
                    node.key,
                    ancestors + [doc_id] if doc_id else ancestors,
                    slugs + [slug] if slug else slugs,
                    depth + 1,
                )

    traverse(to_nested(tree), None, [], [], 0)
    logger.debug("Computed %d paths", len(paths))
    return paths


def get_affected_doc_ids(tree: Sequence[TreeNode], changed_keys: Iterable[str]) -> List[str]:
    """Document ids of the changed nodes and everything beneath them.

    Order of first encounter in a pre-order traversal, duplicates suppressed.
    """
    changed = set(changed_keys)
    affected: Dict[str, None] = {}

    def collect(nodes: Sequence[NestedNode], collecting: bool) -> None:
        for node in nodes:
            should_collect = collecting or node.key in changed
            if should_collect and node.reference:
                affected.setdefault(node.reference, None)
            if node.children:
                collect(node.children, should_collect)

    collect(to_nested(tree), False)
    return list(affected)
