import pytest
from sqlalchemy import update

import services.layer_progress as layer_progress
from models import ProductionInventory, ProductLayer, StepExecution
from services.errors import NotFoundError, StaleStepError, ValidationError
from services.layer_progress import advance_layer, advance_many, load_layer, move_to_inventory


def _history(db, layer_id):
    rows = (
        db.query(StepExecution)
        .filter(StepExecution.layer_id == layer_id)
        .order_by(StepExecution.id)
        .all()
    )
    return [(r.step_id, r.passed) for r in rows]


class TestAdvance:
    def test_walks_the_line_and_records_history(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line)

        r1 = advance_layer(db, layer.id)
        assert (r1.status, r1.from_step_id, r1.to_step_id) == ("advanced", None, line_ab.s1.id)
        assert r1.is_new_micro_line is True
        assert r1.micro_line_id == line_ab.a.id
        assert r1.version == 2

        r2 = advance_layer(db, layer.id)
        assert (r2.to_step_id, r2.is_new_micro_line) == (line_ab.s2.id, False)

        r3 = advance_layer(db, layer.id)
        assert (r3.to_step_id, r3.is_new_micro_line, r3.micro_line_id) == (line_ab.s3.id, True, line_ab.b.id)

        done = advance_layer(db, layer.id)
        assert done.status == "completed"
        assert done.to_step_id is None

        fresh = load_layer(db, layer.id)
        assert fresh.current_step_id == line_ab.s3.id
        assert fresh.current_micro_line_id == line_ab.b.id
        assert fresh.version == 4
        assert _history(db, layer.id) == [
            (line_ab.s1.id, False),
            (line_ab.s1.id, True), (line_ab.s2.id, False),
            (line_ab.s2.id, True), (line_ab.s3.id, False),
        ]

    def test_notes_and_treatments_go_on_the_completed_step(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line, current_step_id=line_ab.s1.id)
        advance_layer(db, layer.id, notes="ok")
        closed = (
            db.query(StepExecution)
            .filter(StepExecution.layer_id == layer.id, StepExecution.passed.is_(True))
            .one()
        )
        assert closed.step_id == line_ab.s1.id
        assert closed.notes == "ok"

    def test_expected_step_mismatch_is_stale(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line, current_step_id=line_ab.s2.id)
        with pytest.raises(StaleStepError):
            advance_layer(db, layer.id, expected_step_id=line_ab.s1.id)
        with pytest.raises(StaleStepError):
            advance_layer(db, layer.id, expected_step_id=None)
        assert _history(db, layer.id) == []

    def test_expected_version_mismatch_is_stale(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line)
        with pytest.raises(StaleStepError):
            advance_layer(db, layer.id, expected_version=7)
        assert advance_layer(db, layer.id, expected_step_id=None, expected_version=1).status == "advanced"

    def test_concurrent_advance_loses(self, db, line_ab, make_layer, monkeypatch):
        layer = make_layer(line_ab.line, current_step_id=line_ab.s1.id)
        real_next_step = layer_progress.next_step

        def racing(l):
            # another station moves the layer between our read and our write
            db.execute(
                update(ProductLayer)
                .where(ProductLayer.id == l.id)
                .values(current_step_id=line_ab.s2.id, version=ProductLayer.version + 1)
                .execution_options(synchronize_session=False)
            )
            return real_next_step(l)

        monkeypatch.setattr(layer_progress, "next_step", racing)
        with pytest.raises(StaleStepError):
            advance_layer(db, layer.id)
        assert _history(db, layer.id) == []

    def test_step_outside_line_falls_back_to_first(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line, current_step_id=line_ab.stray.id)
        result = advance_layer(db, layer.id)
        assert result.to_step_id == line_ab.s1.id
        assert result.is_new_micro_line is True
        assert "not on production line" in result.warning
        # stray step is not closed, only the fallback entry is recorded
        rows = db.query(StepExecution).filter(StepExecution.layer_id == layer.id).all()
        assert [(r.step_id, r.passed) for r in rows] == [(line_ab.s1.id, False)]
        assert rows[0].notes == result.warning

    def test_layer_without_line(self, db, make_layer):
        layer = make_layer(None)
        with pytest.raises(ValidationError, match="no production line"):
            advance_layer(db, layer.id)

    def test_line_without_steps(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.empty)
        with pytest.raises(ValidationError, match="no steps"):
            advance_layer(db, layer.id)

    def test_unknown_layer(self, db):
        with pytest.raises(NotFoundError):
            advance_layer(db, 4242)
        with pytest.raises(ValidationError):
            advance_layer(db, "not-an-id")


def test_advance_many_reports_each_item(db, line_ab, make_layer):
    ok = make_layer(line_ab.line)
    done = make_layer(line_ab.line, current_step_id=line_ab.s3.id)
    lost = make_layer(None)

    results = advance_many(db, [ok.id, 9999, done.id, lost.id])
    assert [r.status for r in results] == ["advanced", "failed", "completed", "failed"]
    assert "not found" in results[1].error
    assert "no production line" in results[3].error
    assert load_layer(db, ok.id).current_step_id == line_ab.s1.id


def test_move_to_inventory(db, line_ab, make_layer):
    rack = ProductionInventory(code="R1", name="Rack 1", capacity=20, shape_code=12)
    db.add(rack)
    db.commit()
    layer = make_layer(line_ab.line)

    moved = move_to_inventory(db, layer.id, rack.id)
    assert moved.current_inventory_id == rack.id
    assert moved.version == 2

    with pytest.raises(NotFoundError):
        move_to_inventory(db, layer.id, 777)
    assert move_to_inventory(db, layer.id, None).current_inventory_id is None
