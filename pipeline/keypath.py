"""Dotted key-path lookup inside parsed JSON."""

from __future__ import annotations

from typing import Any

_MISSING = object()


def split_key_path(key_path: str | None) -> list[str]:
    """``"data.items"`` -> ``["data", "items"]``. Blank paths mean no path."""
    if not key_path or not key_path.strip():
        return []
    return key_path.split(".")


def value_at_key_path(data: Any, key_path: str | None) -> Any:
    """Return the value addressed by ``key_path``, or ``None`` if it is absent.

    Each component is a key of a JSON object; a non-negative integer
    component also indexes into a JSON array. A blank path returns ``data``.
    """
    current = data
    for component in split_key_path(key_path):
        current = _step(current, component)
        if current is _MISSING:
            return None
    return current


def _step(current: Any, component: str) -> Any:
    if isinstance(current, dict):
        return current.get(component, _MISSING)
    if isinstance(current, list) and component.isascii() and component.isdigit():
        index = int(component)
        return current[index] if index < len(current) else _MISSING
    return _MISSING
