from datetime import datetime, timezone

from services.optimization_queue import (
    is_optimizer_step,
    needs_optimization,
    select_for_optimization,
)

OPT = {"id": 1, "name": "Optimizer", "role": "optimizer"}
CUT = {"id": 2, "name": "Cutting", "role": "standard"}

LINE = {"id": 7, "micro_lines": [{"order": 1, "micro_line": {"id": "A", "steps": [
    {"order": 1, "step": OPT},
    {"order": 2, "step": CUT},
]}}]}


def test_is_optimizer_step():
    assert is_optimizer_step(OPT)
    assert is_optimizer_step({"name": "  OPTIMIZER "})
    assert is_optimizer_step({"name": "Station 4", "role": "optimizer"})
    assert not is_optimizer_step(CUT)
    assert not is_optimizer_step(1)
    assert not is_optimizer_step(None)


def test_needs_optimization():
    assert needs_optimization({"current_step": OPT})
    assert not needs_optimization({"current_step": CUT})
    # not started on a line that opens with the optimizer
    assert needs_optimization({"current_step": None, "production_line": LINE})
    assert not needs_optimization({"current_step_id": 2, "production_line": LINE})
    assert not needs_optimization({"production_line": None})
    assert not needs_optimization(None)


def test_selection_is_filtered_and_sorted_by_production_date():
    layers = [
        {"production_code": "late", "current_step": OPT, "production_date": "2024-03-02T00:00:00Z"},
        {"production_code": "undated", "current_step": OPT},
        {"production_code": "cutting", "current_step": CUT, "production_date": "2024-01-01"},
        {"production_code": "early", "current_step": OPT,
         "production_date": datetime(2024, 3, 1, tzinfo=timezone.utc)},
        {"production_code": "naive", "current_step": OPT, "production_date": datetime(2024, 3, 1, 12)},
        {"production_code": "waiting", "current_step": None, "production_line": LINE,
         "production_date": "2024-02-01"},
        {"production_code": "other line", "current_step": None, "production_date": "2024-01-01",
         "production_line": {"micro_lines": [{"order": 1, "micro_line": {"id": "B", "steps": [{"order": 1, "step": CUT}]}}]}},
    ]
    picked = [l["production_code"] for l in select_for_optimization(layers)]
    assert picked == ["waiting", "early", "naive", "late", "undated"]


def test_selection_of_nothing():
    assert select_for_optimization([]) == []
    assert select_for_optimization(None) == []
