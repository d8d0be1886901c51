from datetime import datetime, timedelta, timezone

import pytest

from models import StepExecution, Treatment
from services.errors import NotFoundError, ValidationError
from services.step_executions import list_step_executions, record_step_execution


class TestRecord:
    def test_appends_row_without_moving_layer(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line, current_step_id=line_ab.s2.id)
        ex = record_step_execution(
            db,
            layer_id=layer.id,
            step_id=line_ab.s2.id,
            production_line_id=line_ab.line.id,
            passed=False,
            notes="chipped edge",
        )
        assert ex.id is not None
        assert ex.passed is False
        assert ex.notes == "chipped edge"
        db.refresh(layer)
        assert layer.current_step_id == line_ab.s2.id
        assert layer.version == 1

    def test_accepts_string_and_mapping_ids(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line)
        ex = record_step_execution(
            db,
            layer_id=str(layer.id),
            step_id={"id": line_ab.s1.id},
            production_line_id=line_ab.line,
            passed=True,
        )
        assert (ex.layer_id, ex.step_id, ex.production_line_id) == (layer.id, line_ab.s1.id, line_ab.line.id)

    @pytest.mark.parametrize("missing", ["layer_id", "step_id", "production_line_id"])
    def test_missing_id_is_rejected(self, db, line_ab, make_layer, missing):
        layer = make_layer(line_ab.line)
        kwargs = dict(layer_id=layer.id, step_id=line_ab.s1.id, production_line_id=line_ab.line.id)
        kwargs[missing] = None
        with pytest.raises(ValidationError, match=missing):
            record_step_execution(db, passed=True, **kwargs)
        assert db.query(StepExecution).count() == 0

    def test_non_integer_id_is_rejected(self, db, line_ab):
        with pytest.raises(ValidationError):
            record_step_execution(db, layer_id="abc", step_id=line_ab.s1.id,
                                  production_line_id=line_ab.line.id, passed=True)

    def test_unknown_references(self, db, line_ab, make_layer):
        layer = make_layer(line_ab.line)
        with pytest.raises(NotFoundError, match="Layer"):
            record_step_execution(db, layer_id=9999, step_id=line_ab.s1.id,
                                  production_line_id=line_ab.line.id, passed=True)
        with pytest.raises(NotFoundError, match="Step"):
            record_step_execution(db, layer_id=layer.id, step_id=9999,
                                  production_line_id=line_ab.line.id, passed=True)
        with pytest.raises(NotFoundError, match="Production line"):
            record_step_execution(db, layer_id=layer.id, step_id=line_ab.s1.id,
                                  production_line_id=9999, passed=True)
        assert db.query(StepExecution).count() == 0

    def test_treatments_applied(self, db, line_ab, make_layer):
        t = Treatment(code="WATERJET", name="Waterjet")
        db.add(t)
        db.commit()
        layer = make_layer(line_ab.line)
        ex = record_step_execution(
            db,
            layer_id=layer.id,
            step_id=line_ab.s2.id,
            production_line_id=line_ab.line.id,
            passed=True,
            treatments_applied=[{"treatment_id": t.id, "count": 2, "measurement": "40mm"}],
        )
        assert [(r.treatment_id, r.count, r.measurement) for r in ex.treatments_applied] == [(t.id, 2, "40mm")]

        with pytest.raises(NotFoundError, match="Treatment"):
            record_step_execution(db, layer_id=layer.id, step_id=line_ab.s2.id,
                                  production_line_id=line_ab.line.id, passed=True,
                                  treatments_applied=[{"treatment_id": 555}])


def test_history_is_newest_first(db, line_ab, make_layer):
    layer = make_layer(line_ab.line)
    other = make_layer(line_ab.line)
    t0 = datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)
    for i, step in enumerate([line_ab.s1, line_ab.s2, line_ab.s3]):
        record_step_execution(db, layer_id=layer.id, step_id=step.id, production_line_id=line_ab.line.id,
                              passed=True, scanned_at=t0 + timedelta(minutes=i))
    record_step_execution(db, layer_id=other.id, step_id=line_ab.s1.id,
                          production_line_id=line_ab.line.id, passed=True, scanned_at=t0)

    rows = list_step_executions(db, layer_id=layer.id)
    assert [r.step_id for r in rows] == [line_ab.s3.id, line_ab.s2.id, line_ab.s1.id]
    assert len(list_step_executions(db)) == 4
