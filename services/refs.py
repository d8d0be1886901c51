# services/refs.py
"""
Helpers for references that may arrive in different shapes:

- a bare id (``12`` / ``"12"``)
- a mapping snapshot (``{"id": 12, ...}`` or ``{"_id": "12", ...}``)
- a loaded ORM object (``step.id``)

Everything that compares identities goes through ``ref_id`` so the flow
logic works the same on ORM rows and on JSON payloads.
"""
from collections.abc import Mapping
from typing import Any, Optional

_SCALARS = (str, int, bytes)


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Attribute-or-key lookup (``obj.name`` or ``obj[name]``)."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def is_resolved(value: Any) -> bool:
    """True when ``value`` is a loaded record rather than a bare id."""
    return value is not None and not isinstance(value, _SCALARS)


def ref_id(value: Any) -> Optional[str]:
    """Normalize any reference shape to a comparable string id (or None)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, (str, int)):
        s = str(value).strip()
        return s or None
    inner = field(value, "id")
    if inner is None:
        inner = field(value, "_id")
    if inner is None or inner is value:
        return None
    return ref_id(inner)
