# utils/__init__.py
from sqlalchemy.inspection import inspect


def sa_to_dict(obj, exclude=()):
    """Column values of an ORM row as a dict (relationships are not followed)."""
    if obj is None:
        return None
    return {
        col.key: getattr(obj, col.key)
        for col in inspect(obj.__class__).columns
        if col.key not in exclude
    }


def sa_update_from_dict(obj, data: dict, allow_fields=None):
    """
    Copy ``data`` onto ``obj`` for mapped columns only (optionally limited to
    ``allow_fields``). Strings are stripped; a blank string clears a nullable
    column.
    """
    columns = {c.key: c for c in inspect(obj.__class__).columns}
    keys = allow_fields if allow_fields is not None else data.keys()
    for k in keys:
        if k not in data or k not in columns:
            continue
        value = data[k]
        if isinstance(value, str):
            value = value.strip()
            if value == "" and columns[k].nullable:
                value = None
        setattr(obj, k, value)
    return obj
