from collections.abc import Mapping
from typing import Any

from up2b.core.exceptions import ExtractionError


def resolve(value: Any, path: str) -> Any:
    """Walk ``value`` along a dot-separated path.

    Missing keys and segments that index into a non-object resolve to ``None``; this never raises.
    """
    if not path:
        return value
    current = value
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def resolve_str(value: Any, path: str) -> str:
    found = resolve(value, path)
    if found is None:
        raise ExtractionError(f"no value at '{path}'")
    if not isinstance(found, str):
        raise ExtractionError(f"value at '{path}' is not a string")
    return found


def resolve_optional_str(value: Any, path: str | None) -> str | None:
    if path is None:
        return None
    found = resolve(value, path)
    return found if isinstance(found, str) else None


def resolve_list(value: Any, path: str) -> list[Any]:
    found = resolve(value, path)
    if not isinstance(found, list):
        raise ExtractionError(f"value at '{path}' is not a list")
    return found


def json_equals(left: Any, right: Any) -> bool:
    """Equality over decoded JSON where booleans never equal numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(json_equals(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(json_equals(left[k], right[k]) for k in left)
    return left == right
