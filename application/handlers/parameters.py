# application/handlers/parameters.py
"""Dotted-path access into nested input dictionaries, e.g. ``parameters.ELECTRONS.mixing_beta``."""
from __future__ import annotations

from typing import Any, Dict

_MISSING = object()


def get_path(data: Dict[str, Any], path: str, default: Any = None) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        nxt = current.get(key, _MISSING)
        if nxt is _MISSING:
            nxt = {}
            current[key] = nxt
        elif not isinstance(nxt, dict):
            raise TypeError(f"Cannot descend into non-mapping at '{key}' of '{path}'")
        current = nxt
    current[keys[-1]] = value

