"""
Dotted-path lookups into nested JSON configuration.
"""

from typing import Any

_MISSING = object()


def get_nested(d: dict, key_path: str, default: Any = None) -> Any:
    """
    Look up a value in nested config sections by dotted path.

    Returns default when a section along the path is missing or is not a dict.

    Example:
        get_nested(config, "tcp.port", 10000)
    """
    node = d
    for key in key_path.split("."):
        if not isinstance(node, dict):
            return default
        node = node.get(key, _MISSING)
        if node is _MISSING:
            return default
    return node
