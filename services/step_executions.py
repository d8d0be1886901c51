# services/step_executions.py
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from models import (
    ProductLayer,
    ProductionLine,
    Step,
    StepExecution,
    StepExecutionTreatment,
    Treatment,
)
from services.errors import NotFoundError, ValidationError
from services.refs import field, ref_id

logger = logging.getLogger(__name__)


def _require_id(value, name: str) -> int:
    raw = ref_id(value)
    if raw is None:
        raise ValidationError(f"{name} is required")
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer id")


def _treatment_rows(db: Session, treatments_applied: Optional[Iterable]) -> List[StepExecutionTreatment]:
    rows = []
    for item in treatments_applied or []:
        treatment_id = _require_id(field(item, "treatment_id") or field(item, "treatment"), "treatment_id")
        if not db.get(Treatment, treatment_id):
            raise NotFoundError(f"Treatment {treatment_id} not found")
        rows.append(
            StepExecutionTreatment(
                treatment_id=treatment_id,
                count=field(item, "count"),
                measurement=field(item, "measurement"),
            )
        )
    return rows


def record_step_execution(
    db: Session,
    *,
    layer_id,
    step_id,
    production_line_id,
    passed: bool,
    notes: Optional[str] = None,
    treatments_applied: Optional[Iterable] = None,
    scanned_at: Optional[datetime] = None,
    commit: bool = True,
) -> StepExecution:
    """
    Append one audit row. Never updates the layer's current step.

    With ``commit=False`` the row is only flushed so the caller can bundle it
    with the position update in one transaction.
    """
    layer_id = _require_id(layer_id, "layer_id")
    step_id = _require_id(step_id, "step_id")
    production_line_id = _require_id(production_line_id, "production_line_id")
    if passed is None:
        raise ValidationError("passed is required")

    try:
        if not db.get(ProductLayer, layer_id):
            raise NotFoundError(f"Layer {layer_id} not found")
        if not db.get(Step, step_id):
            raise NotFoundError(f"Step {step_id} not found")
        if not db.get(ProductionLine, production_line_id):
            raise NotFoundError(f"Production line {production_line_id} not found")

        ex = StepExecution(
            layer_id=layer_id,
            step_id=step_id,
            production_line_id=production_line_id,
            scanned_at=scanned_at or datetime.now(timezone.utc),
            passed=bool(passed),
            notes=notes,
            treatments_applied=_treatment_rows(db, treatments_applied),
        )
        db.add(ex)
        db.flush()
    except Exception:
        db.rollback()
        raise

    if commit:
        db.commit()
        db.refresh(ex)

    logger.debug("execution %s: layer=%s step=%s passed=%s", ex.id, layer_id, step_id, ex.passed)
    return ex


def list_step_executions(db: Session, layer_id: Optional[int] = None) -> List[StepExecution]:
    """History, newest scan first."""
    stmt = (
        select(StepExecution)
        .options(
            selectinload(StepExecution.step),
            selectinload(StepExecution.treatments_applied).selectinload(StepExecutionTreatment.treatment),
        )
        .order_by(StepExecution.scanned_at.desc(), StepExecution.id.desc())
    )
    if layer_id is not None:
        stmt = stmt.where(StepExecution.layer_id == layer_id)
    return list(db.scalars(stmt).all())
