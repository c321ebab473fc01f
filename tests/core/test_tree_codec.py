from hierarchy_toolkit.core.models import NestedNode, TreeNode
from hierarchy_toolkit.core.tree_codec import (
    flatten_tree,
    flatten_with_depth,
    is_descendant,
    node_depth,
    node_with_descendants,
    sibling_keys,
    to_flat,
    to_nested,
    visible_count,
)


def _keys(nodes):
    return [n.key for n in nodes]


def test_to_nested_groups_children_in_list_order(sample_tree):
    roots = to_nested(sample_tree)

    assert _keys(roots) == ["a", "c"]
    a = roots[0]
    assert _keys(a.children) == ["b", "e"]
    assert _keys(a.children[0].children) == ["d"]
    assert roots[1].children == []


def test_to_nested_places_orphans_and_self_parents_at_root(make_tree):
    tree = make_tree([
        ("a", None, "doc1"),
        ("x", "missing", "doc2"),
        ("s", "s", "doc3"),
    ])

    roots = to_nested(tree)

    assert _keys(roots) == ["a", "x", "s"]
    # The stored parent pointer is left untouched
    assert roots[1].parent == "missing"


def test_to_nested_does_not_mutate_input(sample_tree):
    before = [(n.key, n.parent) for n in sample_tree]
    roots = to_nested(sample_tree)
    roots[0].children.clear()

    assert [(n.key, n.parent) for n in sample_tree] == before
    assert all(not isinstance(n, NestedNode) for n in sample_tree)


def test_to_nested_empty():
    assert to_nested([]) == []


def test_flatten_round_trip_preserves_shape_and_sibling_order(sample_tree, tree_shape):
    flat = flatten_tree(to_nested(sample_tree))

    # Pre-order: siblings keep their relative order
    assert tree_shape(flat) == [
        ("a", None, "doc1"),
        ("b", "a", "doc2"),
        ("d", "b", "doc4"),
        ("e", "a", "doc5"),
        ("c", None, "doc3"),
    ]
    assert all(type(n) is TreeNode for n in flat)
    # Nesting the result again gives the same tree
    assert flatten_tree(to_nested(flat)) == flat


def test_flatten_tree_normalises_orphan_parent(make_tree):
    flat = flatten_tree(to_nested(make_tree([("x", "missing", "doc1")])))

    assert flat[0].parent is None


def test_to_flat_paths_indices_and_parents(sample_nested):
    items = to_flat(sample_nested)

    assert [i.flat_index for i in items] == [0, 1, 2, 3, 4]
    assert [i.path for i in items] == [
        ["a"],
        ["a", "b"],
        ["a", "b", "d"],
        ["a", "e"],
        ["c"],
    ]
    assert items[0].parent_node is None
    assert items[2].parent_node.key == "b"


def test_to_flat_custom_key_function(sample_nested):
    items = to_flat(sample_nested, get_node_key=lambda node: node.reference)

    assert items[2].path == ["doc1", "doc2", "doc4"]


def test_flatten_with_depth_skips_collapsed_children(sample_nested):
    sample_nested[0].children[0].expanded = False

    rows = flatten_with_depth(sample_nested)

    assert [(r.key, r.depth, r.parent_key, r.index) for r in rows] == [
        ("a", 0, None, 0),
        ("b", 1, "a", 0),
        ("e", 1, "a", 1),
        ("c", 0, None, 1),
    ]


def test_visible_count(sample_nested):
    assert visible_count(sample_nested) == 5

    sample_nested[0].expanded = False
    assert visible_count(sample_nested) == 2


def test_visible_count_matches_visible_rows(sample_nested):
    sample_nested[0].children[0].expanded = False

    assert visible_count(sample_nested) == len(flatten_with_depth(sample_nested))


def test_is_descendant(sample_nested):
    a = sample_nested[0]
    d = a.children[0].children[0]
    c = sample_nested[1]

    assert is_descendant(a, d)
    assert not is_descendant(a, c)
    assert not is_descendant(d, a)
    assert not is_descendant(a, a)


def test_node_depth(sample_tree):
    by_key = {n.key: n for n in sample_tree}

    assert node_depth(by_key["a"], sample_tree) == 0
    assert node_depth(by_key["e"], sample_tree) == 1
    assert node_depth(by_key["d"], sample_tree) == 2


def test_node_depth_terminates_on_cycles(make_tree):
    tree = make_tree([("x", "y", None), ("y", "x", None)])

    assert node_depth(tree[0], tree) == 1


def test_node_with_descendants(sample_tree):
    a = sample_tree[0]

    assert _keys(node_with_descendants(a, sample_tree)) == ["a", "b", "d", "e"]
    assert _keys(node_with_descendants(sample_tree[2], sample_tree)) == ["c"]


def test_sibling_keys(sample_tree, make_tree):
    assert sibling_keys(sample_tree, "b") == ["b", "e"]
    assert sibling_keys(sample_tree, "c") == ["a", "c"]
    assert sibling_keys(sample_tree, "zzz") == []

    orphan_tree = make_tree([("a", None, "doc1"), ("x", "missing", "doc2")])
    assert sibling_keys(orphan_tree, "x") == ["a", "x"]
