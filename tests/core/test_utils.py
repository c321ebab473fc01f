import re

import pytest

from hierarchy_toolkit.core.utils import generate_node_key, get_by_dotted_path, normalize_slug


def test_generate_node_key_unique():
    keys = {generate_node_key() for _ in range(200)}

    assert len(keys) == 200
    assert all(re.fullmatch(r"[0-9a-f]{12}", key) for key in keys)


def test_get_by_dotted_path():
    document = {"slug": {"current": "intro"}, "meta": {"seo": {"path": "x"}}, "title": "T"}

    assert get_by_dotted_path(document, "slug.current") == "intro"
    assert get_by_dotted_path(document, "meta.seo.path") == "x"
    assert get_by_dotted_path(document, "title") == "T"
    assert get_by_dotted_path(document, "missing.current") is None
    assert get_by_dotted_path(document, "title.current") is None
    assert get_by_dotted_path(None, "slug") is None


@pytest.mark.parametrize("value,expected", [
    ("intro", "intro"),
    ("  intro ", "intro"),
    ({"current": "intro"}, "intro"),
    ({"current": ""}, None),
    ("", None),
    ("   ", None),
    (None, None),
    (42, None),
    ({}, None),
])
def test_normalize_slug(value, expected):
    assert normalize_slug(value) == expected
