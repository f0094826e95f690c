from typing import Any

_MISSING = object()


def get_property(data: Any, path: str) -> Any:
    """Resolve a dotted path (e.g., 'abilities.int.dc') against dicts or objects."""
    current = data
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def has_property(data: Any, path: str) -> bool:
    """Whether every segment of a dotted path exists."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return False
    return True


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted path inside nested dicts, creating intermediate dicts."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def delete_path(data: dict[str, Any], path: str) -> bool:
    """Remove the key at a dotted path. Returns False when it was not there."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return False
    return current.pop(parts[-1], _MISSING) is not _MISSING
