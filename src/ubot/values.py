"""Typed access to decoded JSON values.

Update payloads are plain ``dict``/``list`` trees as produced by the JSON
decoder. The helpers here walk dotted paths (``"chat.type"``,
``"entities.0.offset"``) and check the type of what they find, raising
:class:`PathError` instead of letting a ``KeyError`` or ``TypeError`` escape
from deep inside a matcher.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

__all__ = [
    "PathError",
    "get",
    "get_array",
    "get_bool",
    "get_float",
    "get_int",
    "get_object",
    "get_str",
    "lookup",
]

T = TypeVar("T")
_MISSING: Any = object()


class PathError(LookupError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


def _split(path: str) -> list[str]:
    if not path:
        raise PathError(path, "empty path")
    parts = path.split(".")
    if any(not part for part in parts):
        raise PathError(path, "empty path segment")
    return parts


def get(value: Any, path: str) -> Any:
    current = value
    walked: list[str] = []
    for part in _split(path):
        walked.append(part)
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
            if current is _MISSING:
                raise PathError(path, f"unknown key {'.'.join(walked)}")
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not (part.isascii() and part.isdecimal()):
                parent = ".".join(walked[:-1]) or "<root>"
                raise PathError(path, f"{parent} is an array")
            index = int(part)
            if index >= len(current):
                raise PathError(path, f"index {index} out of range")
            current = current[index]
        else:
            raise PathError(path, f"cannot traverse into {type(current).__name__}")
    return current


def _typed(value: Any, path: str, kind: type[T], label: str) -> T:
    found = get(value, path)
    if isinstance(found, bool) and kind is not bool:
        raise PathError(path, f"expected {label}, got bool")
    if not isinstance(found, kind):
        raise PathError(path, f"expected {label}, got {type(found).__name__}")
    return found


def get_object(value: Any, path: str) -> Mapping[str, Any]:
    return _typed(value, path, Mapping, "object")  # type: ignore[type-abstract]


def get_array(value: Any, path: str) -> list[Any]:
    return _typed(value, path, list, "array")


def get_str(value: Any, path: str) -> str:
    return _typed(value, path, str, "string")


def get_bool(value: Any, path: str) -> bool:
    return _typed(value, path, bool, "bool")


def get_int(value: Any, path: str) -> int:
    found = get(value, path)
    if isinstance(found, bool):
        raise PathError(path, "expected integer, got bool")
    if isinstance(found, int):
        return found
    if isinstance(found, float) and found.is_integer():
        return int(found)
    raise PathError(path, f"expected integer, got {type(found).__name__}")


def get_float(value: Any, path: str) -> float:
    found = get(value, path)
    if isinstance(found, bool) or not isinstance(found, (int, float)):
        raise PathError(path, f"expected number, got {type(found).__name__}")
    return float(found)


def lookup(value: Any, path: str, default: T | None = None) -> Any | T | None:
    try:
        return get(value, path)
    except PathError:
        return default
