"""Dotted-path access into nested execution data."""

from __future__ import annotations

import re
from typing import Any


class _Missing:
    """Marker for a path that does not resolve."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


def normalize_path(path: str) -> str:
    """Strip the `$.data.` / `$.` prefixes and turn `[n]` into `.n`."""
    path = path.strip()
    if path.startswith("$.data."):
        path = path[len("$.data."):]
    elif path == "$.data":
        return ""
    elif path.startswith("$."):
        path = path[2:]
    return _INDEX_PATTERN.sub(r".\1", path)


def split_path(path: str) -> list[str]:
    normalized = normalize_path(path)
    return [part for part in normalized.split(".") if part] if normalized else []


def get_path(data: Any, path: str) -> Any:
    """Return the value at `path` or MISSING when any segment is absent."""
    current = data
    for part in split_path(path):
        if isinstance(current, dict):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set `path` in place, creating intermediate objects as needed."""
    parts = split_path(path)
    if not parts:
        raise ValueError("Cannot set an empty path")

    current: Any = data
    for part in parts[:-1]:
        if isinstance(current, list) and part.isdigit() and int(part) < len(current):
            nxt = current[int(part)]
            if not isinstance(nxt, (dict, list)):
                nxt = {}
                current[int(part)] = nxt
            current = nxt
            continue
        if not isinstance(current, dict):
            raise ValueError(f"Cannot set {path!r}: '{part}' is not an object key")
        nxt = current.get(part)
        if not isinstance(nxt, (dict, list)):
            nxt = {}
            current[part] = nxt
        current = nxt

    last = parts[-1]
    if isinstance(current, list):
        if not (last.isdigit() and int(last) < len(current)):
            raise ValueError(f"Cannot set {path!r}: index out of range")
        current[int(last)] = value
    else:
        current[last] = value


def root_key(path: str) -> str:
    """First segment of a path, i.e. the top-level variable it touches."""
    parts = split_path(path)
    if not parts:
        raise ValueError(f"Invalid variable path: {path!r}")
    return parts[0]
