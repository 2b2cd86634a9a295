"""
Utility helpers shared across modules.
"""
from __future__ import annotations

import os
from typing import Any

BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "enabled"})
BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in BOOL_TRUE_VALUES:
            return True
        if normalized in BOOL_FALSE_VALUES:
            return False
    return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name) if name else None
    if raw is None:
        return default
    return parse_bool(raw, default)


def looks_like_node_id(value: Any) -> bool:
    """Node ids are opaque: any non-empty string, or an int from older exports."""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and bool(value.strip())


def is_link(value: Any) -> bool:
    """True for the ``[node_id, output_index]`` shape used by API-format prompts."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return False
    a, b = value[0], value[1]
    return looks_like_node_id(a) and isinstance(b, int) and not isinstance(b, bool)
