"""Flattening and next-step resolution on dict snapshots (no database)."""
import pytest

from services.production_flow import (
    current_position,
    flatten,
    locate,
    next_step,
    step_path,
)


def _line():
    # micro-lines and steps deliberately listed out of order
    return {
        "id": 10,
        "micro_lines": [
            {"order": 2, "micro_line": {"id": "B", "steps": [
                {"order": 1, "step": {"id": 3, "name": "Tempering"}},
            ]}},
            {"order": 1, "micro_line": {"id": "A", "steps": [
                {"order": 2, "step": {"id": 2, "name": "Cutting"}},
                {"order": 1, "step": {"id": 1, "name": "Optimizer"}},
            ]}},
        ],
    }


def _layer(current=None, line=None):
    return {"id": 99, "current_step": current, "production_line": _line() if line is None else line}


class TestFlatten:
    def test_orders_micro_lines_then_steps(self):
        entries = flatten(_line())
        assert [e.step_id for e in entries] == ["1", "2", "3"]
        assert [e.global_index for e in entries] == [0, 1, 2]
        assert [e.micro_line_index for e in entries] == [0, 0, 1]
        assert [e.step_index for e in entries] == [0, 1, 0]
        assert [e.micro_line_id for e in entries] == ["A", "A", "B"]
        assert entries[0].name == "Optimizer"

    def test_missing_or_empty_line(self):
        assert flatten(None) == []
        assert flatten({"id": 1, "micro_lines": []}) == []
        assert flatten({"id": 1}) == []

    def test_unloaded_micro_line_is_skipped(self):
        line = {"micro_lines": [
            {"order": 1, "micro_line": "A"},
            {"order": 2, "micro_line": {"id": "B", "steps": [{"order": 1, "step": {"id": 5}}]}},
        ]}
        entries = flatten(line)
        assert [e.step_id for e in entries] == ["5"]
        assert entries[0].micro_line_index == 1

    def test_bare_step_ids_are_kept(self):
        line = {"micro_lines": [{"order": 1, "micro_line": {"_id": "m1", "steps": [
            {"order": 1, "step_id": 7},
            {"order": 2, "step": "8"},
            {"order": 3},
        ]}}]}
        entries = flatten(line)
        assert [e.step_id for e in entries] == ["7", "8"]
        assert entries[0].micro_line_id == "m1"
        assert entries[0].name is None

    def test_equal_orders_keep_input_order(self):
        line = {"micro_lines": [{"order": 1, "micro_line": {"id": "A", "steps": [
            {"order": 1, "step": {"id": "x"}},
            {"order": 1, "step": {"id": "y"}},
        ]}}]}
        assert [e.step_id for e in flatten(line)] == ["x", "y"]

    def test_locate_accepts_any_reference_shape(self):
        entries = flatten(_line())
        assert locate(entries, 2) == 1
        assert locate(entries, "2") == 1
        assert locate(entries, {"id": 2}) == 1
        assert locate(entries, {"_id": "3"}) == 2
        assert locate(entries, 42) is None
        assert locate(entries, None) is None


class TestNextStep:
    def test_not_started_goes_to_first_step(self):
        decision = next_step(_layer())
        assert decision.step_id == "1"
        assert decision.is_new_micro_line is True
        assert decision.warning is None

    def test_within_micro_line(self):
        decision = next_step(_layer(current={"id": 1}))
        assert decision.step_id == "2"
        assert decision.is_new_micro_line is False
        assert decision.as_decision() == {"step_id": "2", "micro_line_id": "A", "is_new_micro_line": False}

    def test_crossing_into_next_micro_line(self):
        decision = next_step(_layer(current=2))
        assert decision.step_id == "3"
        assert decision.micro_line_id == "B"
        assert decision.is_new_micro_line is True

    def test_current_step_id_field_is_used(self):
        layer = {"current_step_id": 1, "production_line": _line()}
        assert next_step(layer).step_id == "2"

    def test_terminal_step_returns_none(self):
        assert next_step(_layer(current={"id": 3})) is None

    def test_unknown_current_step_falls_back_with_warning(self, caplog):
        decision = next_step(_layer(current={"id": 42}))
        assert decision.step_id == "1"
        assert decision.is_new_micro_line is True
        assert "42" in decision.warning
        assert any("falling back" in r.getMessage() for r in caplog.records)

    def test_no_line_or_no_steps(self):
        assert next_step({"id": 1, "current_step": None}) is None
        assert next_step({"id": 1, "production_line": 10}) is None
        assert next_step(_layer(line={"id": 1, "micro_lines": []})) is None

    def test_walks_whole_line(self):
        seen, current = [], None
        while True:
            decision = next_step(_layer(current=current))
            if decision is None:
                break
            seen.append((decision.step_id, decision.is_new_micro_line))
            current = decision.step_id
        assert seen == [("1", True), ("2", False), ("3", True)]


class TestPosition:
    def test_current_position(self):
        pos = current_position(_layer(current=2))
        assert pos.global_index == 1
        assert current_position(_layer()) is None

    def test_step_path_marks_current(self):
        path = step_path(_layer(current=2)).splitlines()
        assert path == ["1. Optimizer", "2. Cutting (CURRENT)", "3. Tempering"]

    def test_step_path_without_line(self):
        assert step_path({"id": 1}) == "No production line"


@pytest.mark.parametrize("current,expected", [(None, "1"), (1, "2"), (2, "3")])
def test_next_step_from_each_position(current, expected):
    assert next_step(_layer(current=current)).step_id == expected
