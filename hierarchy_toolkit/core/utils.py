from __future__ import annotations

"""Simple reusable helper functions.

These helpers are side-effect-free and contain no UI or disk I/O; they can be
used across all layers of the toolkit.
"""

from typing import Any, Mapping, Optional
import uuid

__all__ = [
    "generate_node_key",
    "get_by_dotted_path",
    "normalize_slug",
]


def generate_node_key() -> str:
    """Generate a unique key suitable for a tree node."""
    return uuid.uuid4().hex[:12]


def get_by_dotted_path(data: Optional[Mapping[str, Any]], dotted_path: str) -> Any:
    """Return the value found at *dotted_path* inside nested mappings.

    Returns None as soon as a segment is missing or an intermediate value is
    not a mapping.

    Examples:
        >>> get_by_dotted_path({"slug": {"current": "intro"}}, "slug.current")
        'intro'
        >>> get_by_dotted_path({"slug": None}, "slug.current") is None
        True
    """
    current: Any = data
    for segment in dotted_path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def normalize_slug(value: Any) -> Optional[str]:
    """Coerce an extracted slug value to a non-empty string or None.

    Slug objects of the form ``{"current": "..."}`` resolve to their
    ``current`` value. Blank strings count as missing.
    """
    if isinstance(value, Mapping):
        value = value.get("current")
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
