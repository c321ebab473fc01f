"""Tree editor configuration model.

Values only: loading is handled by :class:`hierarchy_toolkit.config.ConfigManager`
or by the host application.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Optional, Union

SlugExtractor = Callable[[Dict[str, Any]], Optional[str]]
SlugFieldConfig = Union[str, SlugExtractor]

DEFAULT_FIELD_KEY = "tree"
DEFAULT_DOC_TYPE = "hierarchy.tree"


@dataclass
class TreeEditorOptions:
    """Configuration surface consumed by the tree editor core."""

    max_depth: Optional[int] = None
    field_key: str = DEFAULT_FIELD_KEY
    document_type: str = DEFAULT_DOC_TYPE
    path_separator: str = "/"
    slug_field: Optional[SlugFieldConfig] = None
    indentation_width: float = 44
    change_threshold: float = 0.65
    maintain_threshold: float = 0.35
    row_height: int = 51
    enable_tree_change_callback: bool = True
    in_tree_field: Optional[str] = None
    auto_sync_in_tree: bool = False

    def __post_init__(self):
        """Validate option values after initialization."""
        if self.max_depth is not None and self.max_depth < 1:
            raise ValueError("max_depth must be at least 1 when set")
        if self.indentation_width <= 0:
            raise ValueError("indentation_width must be positive")
        if not 0 < self.maintain_threshold < self.change_threshold < 1:
            raise ValueError(
                "Thresholds must satisfy 0 < maintain_threshold < change_threshold < 1"
            )
        if not self.path_separator:
            raise ValueError("path_separator cannot be empty")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> "TreeEditorOptions":
        """Create options from a configuration mapping.

        Unknown keys are ignored so config files may carry host-specific
        entries. Keyword overrides win over mapping values.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in dict(data or {}).items() if k in known}
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_config(cls, **overrides: Any) -> "TreeEditorOptions":
        """Create options from the packaged/user ``tree_editor.yml``."""
        from hierarchy_toolkit.config import ConfigManager

        return cls.from_mapping(ConfigManager().get_tree_editor_config(), **overrides)
