"""Shared fixtures for Hierarchy Toolkit tests.

Trees are described compactly as ``(key, parent, reference)`` tuples so each
test can state the exact shape it works on.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hierarchy_toolkit.config import ConfigManager
from hierarchy_toolkit.core.models import DocumentPair, TreeNode
from hierarchy_toolkit.core.tree_codec import to_nested

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

Row = Tuple[str, Optional[str], Optional[str]]


def build_tree(rows: Iterable[Row], doc_type: str = "page") -> List[TreeNode]:
    """Build a flat tree from ``(key, parent, reference)`` tuples."""
    return [
        TreeNode(key=key, parent=parent, reference=ref, doc_type=doc_type if ref else None)
        for key, parent, ref in rows
    ]


def shape(tree: Iterable[TreeNode]) -> List[Row]:
    """Inverse of :func:`build_tree`, for compact assertions."""
    return [(node.key, node.parent, node.reference) for node in tree]


@pytest.fixture
def make_tree():
    return build_tree


@pytest.fixture
def tree_shape():
    return shape


@pytest.fixture
def sample_tree():
    """
    a (doc1)
      b (doc2)
        d (doc4)
      e (doc5)
    c (doc3)
    """
    return build_tree([
        ("a", None, "doc1"),
        ("b", "a", "doc2"),
        ("c", None, "doc3"),
        ("d", "b", "doc4"),
        ("e", "a", "doc5"),
    ])


@pytest.fixture
def sample_nested(sample_tree):
    return to_nested(sample_tree)


@pytest.fixture
def all_items():
    """Resolved candidate pool keyed by published id."""
    def published(doc_id, slug, doc_type="page"):
        return {"_id": doc_id, "_type": doc_type, "slug": {"current": slug}}

    return {
        "doc1": DocumentPair(published=published("doc1", "docs")),
        "doc2": DocumentPair(
            draft={"_id": "drafts.doc2", "_type": "page", "slug": {"current": "draft-guides"}},
            published=published("doc2", "guides"),
        ),
        "doc3": DocumentPair(published=published("doc3", "blog")),
        "doc4": DocumentPair(draft={"_id": "drafts.doc4", "_type": "page", "slug": {"current": "setup"}}),
        "doc5": DocumentPair(published=published("doc5", "")),
        "doc6": DocumentPair(published=published("doc6", "about")),
    }


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """A ConfigManager reading user overrides from an empty temp directory."""
    monkeypatch.setenv("HIERARCHY_TOOLKIT_CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(ConfigManager, "_instance", None)
    yield tmp_path
    monkeypatch.setattr(ConfigManager, "_instance", None)
