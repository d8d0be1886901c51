# services/layer_progress.py
"""
Moving layers along their production line.

The position write is a conditional UPDATE keyed on the current step and the
row version the caller observed, so two stations scanning the same layer
cannot both advance it. History rows are written in the same transaction.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from models import (
    Invoice,
    MicroLine,
    MicroLineStep,
    ProductionInventory,
    ProductionLine,
    ProductionLineMicroLine,
    ProductLayer,
    ProductLayerTreatment,
)
from services.errors import DomainError, NotFoundError, StaleStepError, ValidationError
from services.production_flow import flatten, next_step
from services.refs import ref_id
from services.step_executions import record_step_execution

logger = logging.getLogger(__name__)

UNSET = object()

LINE_GRAPH = (
    selectinload(ProductLayer.production_line)
    .selectinload(ProductionLine.micro_lines)
    .selectinload(ProductionLineMicroLine.micro_line)
    .selectinload(MicroLine.steps)
    .selectinload(MicroLineStep.step)
)

LAYER_OPTIONS = (
    selectinload(ProductLayer.current_step),
    selectinload(ProductLayer.current_inventory),
    selectinload(ProductLayer.glass),
    selectinload(ProductLayer.product),
    selectinload(ProductLayer.invoice).selectinload(Invoice.customer),
    selectinload(ProductLayer.treatments).selectinload(ProductLayerTreatment.treatment),
    LINE_GRAPH,
)


@dataclass
class AdvanceResult:
    layer_id: Any
    status: str                      # advanced / completed / failed
    from_step_id: Optional[int] = None
    to_step_id: Optional[int] = None
    micro_line_id: Optional[int] = None
    is_new_micro_line: bool = False
    version: Optional[int] = None
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _as_int(value, name: str) -> Optional[int]:
    raw = ref_id(value)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer id")


def load_layer(db: Session, layer_id) -> ProductLayer:
    lid = _as_int(layer_id, "layer_id")
    if lid is None:
        raise ValidationError("layer_id is required")
    layer = db.scalars(
        select(ProductLayer)
        .options(*LAYER_OPTIONS)
        .where(ProductLayer.id == lid)
        .execution_options(populate_existing=True)
    ).first()
    if not layer:
        raise NotFoundError(f"Layer {lid} not found")
    return layer


def load_layers(db: Session, layer_ids: Optional[Iterable] = None) -> List[ProductLayer]:
    stmt = select(ProductLayer).options(*LAYER_OPTIONS).order_by(ProductLayer.id)
    if layer_ids is not None:
        ids = [_as_int(i, "layer_id") for i in layer_ids]
        stmt = stmt.where(ProductLayer.id.in_([i for i in ids if i is not None]))
    return list(db.scalars(stmt).all())


def advance_layer(
    db: Session,
    layer_id,
    *,
    expected_step_id=UNSET,
    expected_version: Optional[int] = None,
    notes: Optional[str] = None,
    treatments_applied: Optional[Iterable] = None,
) -> AdvanceResult:
    """
    Complete the current step and enter the next one.

    ``expected_step_id`` / ``expected_version`` are what the caller saw when
    it made its decision; when omitted, the values read here are used.
    """
    layer = load_layer(db, layer_id)
    line = layer.production_line
    if line is None:
        raise ValidationError(f"Layer {layer.id} has no production line; cannot progress")

    observed = layer.current_step_id
    if expected_step_id is not UNSET and _as_int(expected_step_id, "expected_step_id") != observed:
        raise StaleStepError(f"Layer {layer.id} is no longer at step {ref_id(expected_step_id)}")
    if expected_version is not None and expected_version != layer.version:
        raise StaleStepError(f"Layer {layer.id} changed (version {layer.version}, expected {expected_version})")

    decision = next_step(layer)
    if decision is None:
        if not flatten(line):
            raise ValidationError(f"Production line {line.id} has no steps; cannot progress")
        return AdvanceResult(layer_id=layer.id, status="completed", from_step_id=observed, version=layer.version)

    to_step = int(decision.step_id)
    micro_line_id = _as_int(decision.micro_line_id, "micro_line_id")
    seen_version = layer.version

    cond = [ProductLayer.id == layer.id, ProductLayer.version == seen_version]
    if observed is None:
        cond.append(ProductLayer.current_step_id.is_(None))
    else:
        cond.append(ProductLayer.current_step_id == observed)

    res = db.execute(
        update(ProductLayer)
        .where(*cond)
        .values(
            current_step_id=to_step,
            current_micro_line_id=micro_line_id,
            version=ProductLayer.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise StaleStepError(f"Layer {layer.id} was advanced by another station")

    # the old step is only closed when it really belongs to this line
    if observed is not None and decision.warning is None:
        record_step_execution(
            db,
            layer_id=layer.id,
            step_id=observed,
            production_line_id=line.id,
            passed=True,
            notes=notes,
            treatments_applied=treatments_applied,
            commit=False,
        )
    record_step_execution(
        db,
        layer_id=layer.id,
        step_id=to_step,
        production_line_id=line.id,
        passed=False,
        notes=decision.warning,
        commit=False,
    )
    db.commit()

    logger.info("layer %s: step %s -> %s", layer.id, observed, to_step)
    return AdvanceResult(
        layer_id=layer.id,
        status="advanced",
        from_step_id=observed,
        to_step_id=to_step,
        micro_line_id=micro_line_id,
        is_new_micro_line=decision.is_new_micro_line,
        version=seen_version + 1,
        warning=decision.warning,
    )


def advance_many(db: Session, layer_ids: Iterable) -> List[AdvanceResult]:
    """Advance each layer on its own; failures are reported per item."""
    results: List[AdvanceResult] = []
    for lid in layer_ids:
        try:
            results.append(advance_layer(db, lid))
        except DomainError as e:
            db.rollback()
            logger.warning("advance of layer %s failed: %s", lid, e.message)
            results.append(AdvanceResult(layer_id=lid, status="failed", error=e.message))
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("advance of layer %s failed", lid)
            results.append(AdvanceResult(layer_id=lid, status="failed", error=str(e.__class__.__name__)))
    return results


def move_to_inventory(db: Session, layer_id, inventory_id) -> ProductLayer:
    """Park the layer in a holding location (None clears it)."""
    layer = load_layer(db, layer_id)
    inv_id = _as_int(inventory_id, "inventory_id")
    if inv_id is not None and not db.get(ProductionInventory, inv_id):
        raise NotFoundError(f"Inventory {inv_id} not found")
    layer.current_inventory_id = inv_id
    layer.version = layer.version + 1
    db.commit()
    return load_layer(db, layer.id)
