import logging

import pytest

from hierarchy_toolkit.core.models import NestedNode, TreeNode
from hierarchy_toolkit.core.patches import (
    EnsureField,
    InsertNode,
    RemoveNode,
    SetParent,
    apply_patches,
)
from hierarchy_toolkit.core.services.path_service import compute_all_paths
from hierarchy_toolkit.core.services.tree_operations_service import TreeOperationsService
from hierarchy_toolkit.core.tree_codec import to_nested
from hierarchy_toolkit.ui.controllers.drag_controller import DragController


@pytest.fixture
def service():
    return TreeOperationsService()


def _apply(tree, result):
    assert result.success, result.message
    return apply_patches(tree, result.batch.patches)


# ---------------------------------------------------------------------------
# add
# ---------------------------------------------------------------------------


def test_add_item_appends_at_root(service, sample_tree, tree_shape):
    candidate = NestedNode(key="n6", reference="doc6", doc_type="page", parent="a", published_id="doc6")

    result = service.add_item(sample_tree, candidate)
    updated = _apply(sample_tree, result)

    assert isinstance(result.batch.patches[0], EnsureField)
    assert tree_shape(updated)[-1] == ("n6", None, "doc6")
    # Stored as a plain node, view decorations dropped
    assert type(updated[-1]) is TreeNode
    assert result.batch.meta.operation == "add"
    assert result.batch.meta.node_keys == ["n6"]


def test_add_item_rejects_existing_reference(service, sample_tree):
    result = service.add_item(sample_tree, TreeNode(key="zz", reference="doc1"))

    assert not result.success
    assert result.batch is None


def test_add_item_rejects_missing_reference_and_duplicate_key(service, sample_tree):
    assert not service.add_item(sample_tree, TreeNode(key="zz")).success
    assert not service.add_item(sample_tree, TreeNode(key="a", reference="doc9")).success


def test_add_item_to_empty_tree_initialises_field():
    service = TreeOperationsService(patch_prefix="tree")

    result = service.add_item([], TreeNode(key="n1", reference="doc1"))
    document = apply_patches({"_id": "t"}, result.batch.patches)

    assert [n.key for n in document["tree"]] == ["n1"]
    assert all(p.path[0] == "tree" for p in result.batch.patches)


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


def test_remove_item_promotes_children_to_former_parent(service, sample_tree, tree_shape):
    result = service.remove_item(sample_tree, "b")
    updated = _apply(sample_tree, result)

    assert tree_shape(updated) == [
        ("a", None, "doc1"),
        ("c", None, "doc3"),
        ("d", "a", "doc4"),
        ("e", "a", "doc5"),
    ]
    assert result.details == {"promoted": 1}
    assert result.batch.meta.operation == "remove"


def test_remove_root_promotes_children_to_root(service, sample_tree):
    updated = _apply(sample_tree, service.remove_item(sample_tree, "a"))

    roots = to_nested(updated)
    assert [n.key for n in roots] == ["b", "c", "e"]
    assert [n.key for n in roots[0].children] == ["d"]


def test_remove_leaf(service, sample_tree):
    result = service.remove_item(sample_tree, "d")

    assert result.batch.patches[1:] == (RemoveNode(key="d"),)


def test_remove_unknown_key(service, sample_tree):
    result = service.remove_item(sample_tree, "zzz")

    assert not result.success
    assert result.details == {"key": "zzz"}


# ---------------------------------------------------------------------------
# duplicate
# ---------------------------------------------------------------------------


def test_duplicate_inserts_clone_after_original_without_children(service, sample_tree):
    result = service.duplicate_item(sample_tree, "b")
    updated = _apply(sample_tree, result)

    clone_key = result.details["clone_key"]
    assert clone_key not in {n.key for n in sample_tree}
    clone = next(n for n in updated if n.key == clone_key)
    assert clone.reference == "doc2"
    assert clone.parent == "a"

    a = to_nested(updated)[0]
    assert [n.key for n in a.children] == ["b", clone_key, "e"]
    clone_nested = a.children[1]
    assert clone_nested.children == []
    # b keeps its own child
    assert [n.key for n in a.children[0].children] == ["d"]
    assert result.batch.meta.node_keys == ["b", clone_key]


# ---------------------------------------------------------------------------
# reorder
# ---------------------------------------------------------------------------


def test_move_item_up_and_down_among_siblings(service, sample_tree):
    up = _apply(sample_tree, service.move_item_up(sample_tree, "e"))
    assert [n.key for n in to_nested(up)[0].children] == ["e", "b"]

    down = _apply(sample_tree, service.move_item_down(sample_tree, "a"))
    assert [n.key for n in to_nested(down)] == ["c", "a"]
    # Subtree follows its root
    assert [n.key for n in to_nested(down)[1].children] == ["b", "e"]


def test_move_item_boundaries_are_noops(service, sample_tree):
    up = service.move_item_up(sample_tree, "a")
    down = service.move_item_down(sample_tree, "e")

    assert not up.success and up.batch is None
    assert not down.success
    assert "boundary" in up.message


def test_move_item_meta(service, sample_tree):
    result = service.move_item_down(sample_tree, "b")

    assert result.batch.meta.operation == "reorder"
    assert result.batch.patches[1:] == (
        RemoveNode(key="b"),
        InsertNode(node=TreeNode(key="b", reference="doc2", doc_type="page", parent="a"), position="after", anchor_key="e"),
    )


# ---------------------------------------------------------------------------
# drag-and-drop moves
# ---------------------------------------------------------------------------


def test_drag_move_scenario_nests_under_previous_root(make_tree, service, tree_shape):
    tree = make_tree([("a", None, "doc1"), ("b", "a", "doc2"), ("c", None, "doc3")])
    drag = DragController()

    assert drag.start(to_nested(tree), "c")
    drag.move(44)
    moved = drag.end()
    result = service.handle_moved_node(moved)
    updated = _apply(tree, result)

    assert ("c", "a", "doc3") in tree_shape(updated)
    paths = {p.doc_id: p for p in compute_all_paths(updated)}
    assert paths["doc3"].ancestors == ["doc1"]
    assert paths["doc3"].depth == 1
    assert paths["doc3"].sibling_index == 1
    assert paths["doc3"].parent_node_key == "a"
    assert result.batch.meta.operation == "move"
    assert result.details == {"parent_key": "a", "sibling_index": 1}


def test_drag_move_to_root_first_position(sample_tree, service):
    drag = DragController()
    drag.start(to_nested(sample_tree), "e")
    drag.over("a")
    moved = drag.end()

    updated = _apply(sample_tree, service.handle_moved_node(moved))

    roots = to_nested(updated)
    assert [n.key for n in roots] == ["e", "a", "c"]
    assert [n.key for n in roots[1].children] == ["b"]


def test_drag_move_as_only_child_sets_parent(make_tree, service):
    tree = make_tree([("a", None, "doc1"), ("b", None, "doc2")])
    drag = DragController()
    drag.start(to_nested(tree), "b")
    drag.move(44)

    result = service.handle_moved_node(drag.end())

    assert result.batch.patches[1:] == (SetParent(key="b", parent="a"),)
    assert _apply(tree, result)[1].parent == "a"


def test_handle_moved_node_missing_from_rebuilt_tree(service, sample_nested):
    class Moved:
        tree = sample_nested
        node = NestedNode(key="ghost")
        parent_key = None

    result = service.handle_moved_node(Moved())

    assert not result.success


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------


def test_on_change_receives_each_batch(sample_tree):
    received = []
    service = TreeOperationsService(patch_prefix="tree", on_change=received.append)

    service.remove_item(sample_tree, "d")
    service.move_item_up(sample_tree, "a")

    assert len(received) == 1
    assert received[0].meta.operation == "remove"


def test_on_change_failure_is_logged_not_raised(sample_tree, caplog):
    def boom(batch):
        raise RuntimeError("backend down")

    service = TreeOperationsService(on_change=boom)

    with caplog.at_level(logging.ERROR):
        result = service.remove_item(sample_tree, "d")

    assert result.success
    assert "[hierarchy-toolkit] patch dispatch error" in caplog.text
