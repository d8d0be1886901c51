# services/optimization_queue.py
"""Layers waiting at the optimizer step, oldest production date first."""
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional

from services.production_flow import flatten
from services.refs import field, is_resolved

OPTIMIZER = "optimizer"


def is_optimizer_step(step: Any) -> bool:
    if not is_resolved(step):
        return False
    if (field(step, "role") or "").lower() == OPTIMIZER:
        return True
    # rows created before the role column existed are matched by name
    return (field(step, "name") or "").strip().lower() == OPTIMIZER


def needs_optimization(layer: Any) -> bool:
    """At the optimizer now, or not started on a line that opens with it."""
    if layer is None:
        return False
    current = field(layer, "current_step")
    if current is not None:
        return is_optimizer_step(current)
    if field(layer, "current_step_id") is not None:
        return False
    entries = flatten(field(layer, "production_line"))
    return bool(entries) and is_optimizer_step(entries[0].step)


def _sort_key(layer: Any):
    d = _as_datetime(field(layer, "production_date"))
    if d is None:
        return (1, datetime.min.replace(tzinfo=timezone.utc))
    return (0, d)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        d = value
    elif isinstance(value, date):
        d = datetime(value.year, value.month, value.day)
    else:
        try:
            d = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    return d if d.tzinfo else d.replace(tzinfo=timezone.utc)


def select_for_optimization(layers: Iterable[Any]) -> List[Any]:
    queued = [l for l in (layers or []) if needs_optimization(l)]
    return sorted(queued, key=_sort_key)
