# routers/v1/product_layers.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_, cast, String
from typing import List, Optional

from database import get_db
from models import (
    Glass, Invoice, Product, ProductionInventory, ProductionLine, ProductLayer,
    ProductLayerTreatment, Treatment,
)
from schemas import (
    ProductLayerCreate, ProductLayerOut, NextStepOut, AdvanceIn, AdvanceOut,
    AdvanceBatchIn, AdvanceBatchOut, InventoryMoveIn, StepExecutionOut, StepMini,
)
from services.errors import ValidationError
from services.layer_progress import (
    LAYER_OPTIONS, UNSET, advance_layer, advance_many, load_layer, move_to_inventory,
)
from services.production_flow import current_position, flatten, locate, next_step, step_path
from services.step_executions import list_step_executions
from utils.sequencer import next_code_yearly

router = APIRouter(prefix="/product-layers", tags=["product_layers"])

OPEN_INVOICE_STATUSES = ("pending", "in progress", "stop production")


def _require(db: Session, Model, obj_id: Optional[int], label: str):
    if obj_id is None:
        return None
    obj = db.get(Model, obj_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


# ---------- CREATE ----------
@router.post("", response_model=ProductLayerOut)
def create_product_layer(payload: ProductLayerCreate, db: Session = Depends(get_db)):
    _require(db, Glass, payload.glass_id, "Glass")
    _require(db, Product, payload.product_id, "Product")
    _require(db, Invoice, payload.invoice_id, "Invoice")
    _require(db, ProductionInventory, payload.current_inventory_id, "Inventory")
    line = _require(db, ProductionLine, payload.production_line_id, "Production line")

    # a starting step must be reachable on the layer's own line
    micro_line_id = None
    if payload.current_step_id is not None:
        entries = flatten(line) if line else []
        idx = locate(entries, payload.current_step_id)
        if idx is None:
            raise HTTPException(400, "current_step_id is not on the layer's production line")
        micro_line_id = int(entries[idx].micro_line_id)

    for t in payload.treatments:
        _require(db, Treatment, t.treatment_id, f"Treatment {t.treatment_id}")

    raw_code = (payload.production_code or "").strip().upper()
    autogen = raw_code in ("", "AUTO", "AUTOGEN")
    code = next_code_yearly(db, "PL") if autogen else raw_code

    if not autogen and db.query(ProductLayer).filter(ProductLayer.production_code == code).first():
        raise HTTPException(409, "Duplicate production_code")

    layer = ProductLayer(
        production_code=code,
        glass_id=payload.glass_id,
        product_id=payload.product_id,
        invoice_id=payload.invoice_id,
        production_line_id=payload.production_line_id,
        width=payload.width,
        height=payload.height,
        production_date=payload.production_date,
        delivery_date=payload.delivery_date,
        current_step_id=payload.current_step_id,
        current_micro_line_id=micro_line_id,
        current_inventory_id=payload.current_inventory_id,
        production_notes=payload.production_notes,
        design_number=payload.design_number,
        treatments=[
            ProductLayerTreatment(treatment_id=t.treatment_id, count=t.count, measurement=t.measurement)
            for t in payload.treatments
        ],
    )
    db.add(layer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate production_code")
    return load_layer(db, layer.id)


# ---------- LIST ----------
@router.get("", response_model=List[ProductLayerOut])
def list_product_layers(
    q: Optional[str] = Query(None, description="Search production_code / design_number"),
    step_id: Optional[int] = None,
    production_line_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    query = db.query(ProductLayer).options(*LAYER_OPTIONS)
    if q:
        ql = f"%{q.strip()}%"
        query = query.filter(or_(ProductLayer.production_code.ilike(ql), ProductLayer.design_number.ilike(ql)))
    if step_id is not None:
        query = query.filter(ProductLayer.current_step_id == step_id)
    if production_line_id is not None:
        query = query.filter(ProductLayer.production_line_id == production_line_id)
    return query.order_by(ProductLayer.id.desc()).all()


# ---------- FIND (scanner short id) ----------
@router.get("/find-by-short-id")
def find_by_short_id(short_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Scanned labels may carry only the start of the id / production code."""
    token = short_id.strip().upper()
    layer = (
        db.query(ProductLayer)
        .filter(or_(
            ProductLayer.production_code == token,
            ProductLayer.production_code.like(f"{token}%"),
            cast(ProductLayer.id, String).like(f"{token}%"),
        ))
        .order_by(ProductLayer.id.asc())
        .first()
    )
    if not layer:
        raise HTTPException(404, "No matching layer found")
    return {"layer_id": layer.id, "production_code": layer.production_code, "success": True}


# ---------- BATCH ADVANCE ----------
@router.post("/advance-batch", response_model=AdvanceBatchOut)
def advance_batch(payload: AdvanceBatchIn, db: Session = Depends(get_db)):
    results = advance_many(db, payload.layer_ids)
    failed = sum(1 for r in results if r.status == "failed")
    return AdvanceBatchOut(
        results=[AdvanceOut(**r.to_dict()) for r in results],
        advanced=sum(1 for r in results if r.status == "advanced"),
        failed=failed,
    )


# ---------- GET ----------
@router.get("/{layer_id}", response_model=ProductLayerOut)
def get_product_layer(layer_id: int, db: Session = Depends(get_db)):
    return load_layer(db, layer_id)


@router.get("/{layer_id}/next-step", response_model=NextStepOut)
def get_next_step(layer_id: int, db: Session = Depends(get_db)):
    layer = load_layer(db, layer_id)
    if layer.production_line is None:
        raise ValidationError(f"Layer {layer.id} has no production line; cannot progress")

    decision = next_step(layer)
    if decision is None:
        if not flatten(layer.production_line):
            raise ValidationError(f"Production line {layer.production_line_id} has no steps")
        return NextStepOut(layer_id=layer.id, current_step_id=layer.current_step_id, completed=True)

    return NextStepOut(
        layer_id=layer.id,
        current_step_id=layer.current_step_id,
        next_step=StepMini.model_validate(decision.step),
        warning=decision.warning,
        **decision.as_decision(),
    )


@router.get("/{layer_id}/path")
def get_step_path(layer_id: int, db: Session = Depends(get_db)):
    layer = load_layer(db, layer_id)
    pos = current_position(layer)
    return {
        "layer_id": layer.id,
        "path": step_path(layer),
        "position": None if pos is None else {
            "index": pos.global_index + 1,
            "step_id": pos.step_id,
            "step_name": pos.name,
            "micro_line_id": pos.micro_line_id,
        },
    }


@router.get("/{layer_id}/history", response_model=List[StepExecutionOut])
def get_layer_history(layer_id: int, db: Session = Depends(get_db)):
    load_layer(db, layer_id)
    return list_step_executions(db, layer_id=layer_id)


# ---------- ACTIONS ----------
@router.post("/{layer_id}/advance", response_model=AdvanceOut)
def advance(layer_id: int, payload: Optional[AdvanceIn] = None, db: Session = Depends(get_db)):
    payload = payload or AdvanceIn()
    sent = payload.model_dump(exclude_unset=True)
    result = advance_layer(
        db,
        layer_id,
        expected_step_id=sent["expected_step_id"] if "expected_step_id" in sent else UNSET,
        expected_version=payload.expected_version,
        notes=payload.notes,
        treatments_applied=payload.treatments_applied,
    )
    return AdvanceOut(**result.to_dict())


@router.put("/{layer_id}/inventory", response_model=ProductLayerOut)
def move_layer_to_inventory(layer_id: int, payload: InventoryMoveIn, db: Session = Depends(get_db)):
    return move_to_inventory(db, layer_id, payload.inventory_id)


# ---------- DELETE ----------
@router.delete("/{layer_id}")
def delete_product_layer(layer_id: int, db: Session = Depends(get_db)):
    layer = db.get(ProductLayer, layer_id)
    if not layer:
        raise HTTPException(404, "Layer not found")
    if layer.invoice is not None and layer.invoice.status in OPEN_INVOICE_STATUSES:
        raise HTTPException(400, "Layer belongs to an open invoice; cannot delete")
    if layer.executions:
        raise HTTPException(400, "Layer has production history; cannot delete")
    db.delete(layer)
    db.commit()
    return {"message": "Layer deleted"}
