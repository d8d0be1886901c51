# routers/v1/production_lines.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from typing import List

from database import get_db
from models import (
    MicroLine, MicroLineStep, ProductionLine, ProductionLineMicroLine, ProductLayer,
)
from schemas import (
    ProductionLineCreate, ProductionLineUpdate, ProductionLineOut, FlatStepOut,
)
from services.production_flow import flatten

router = APIRouter(prefix="/production-lines", tags=["production_lines"])

_GRAPH = (
    selectinload(ProductionLine.micro_lines)
    .selectinload(ProductionLineMicroLine.micro_line)
    .selectinload(MicroLine.steps)
    .selectinload(MicroLineStep.step)
)


def _with_graph(db: Session, line_id: int):
    return db.query(ProductionLine).options(_GRAPH).filter(ProductionLine.id == line_id).first()


def _micro_rows(db: Session, items) -> List[ProductionLineMicroLine]:
    rows = []
    for it in items:
        if not db.get(MicroLine, it.micro_line_id):
            raise HTTPException(404, f"Micro line {it.micro_line_id} not found")
        rows.append(ProductionLineMicroLine(micro_line_id=it.micro_line_id, order=it.order))
    return rows


# ---------- CREATE ----------
@router.post("", response_model=ProductionLineOut)
def create_production_line(payload: ProductionLineCreate, db: Session = Depends(get_db)):
    code = payload.code.strip().upper()
    if db.query(ProductionLine).filter(ProductionLine.code == code).first():
        raise HTTPException(409, "Duplicate production line code")
    if db.query(ProductionLine).filter(ProductionLine.name == payload.name.strip()).first():
        raise HTTPException(409, "Duplicate production line name")

    line = ProductionLine(
        code=code,
        name=payload.name.strip(),
        description=payload.description,
        micro_lines=_micro_rows(db, payload.micro_lines),
    )
    db.add(line)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate micro line order in production line")
    return _with_graph(db, line.id)


# ---------- LIST ----------
@router.get("", response_model=List[ProductionLineOut])
def list_production_lines(db: Session = Depends(get_db)):
    return db.query(ProductionLine).options(_GRAPH).order_by(ProductionLine.code.asc()).all()


# ---------- GET ----------
@router.get("/{line_id}", response_model=ProductionLineOut)
def get_production_line(line_id: int, db: Session = Depends(get_db)):
    line = _with_graph(db, line_id)
    if not line:
        raise HTTPException(404, "Production line not found")
    return line


@router.get("/{line_id}/steps", response_model=List[FlatStepOut])
def get_production_line_steps(line_id: int, db: Session = Depends(get_db)):
    """Flattened, globally ordered steps of the line."""
    line = _with_graph(db, line_id)
    if not line:
        raise HTTPException(404, "Production line not found")
    return [
        FlatStepOut(
            global_index=e.global_index,
            micro_line_index=e.micro_line_index,
            step_index=e.step_index,
            order=e.order,
            step_id=e.step_id,
            step_name=e.name,
            micro_line_id=e.micro_line_id,
        )
        for e in flatten(line)
    ]


# ---------- UPDATE ----------
@router.put("/{line_id}", response_model=ProductionLineOut)
def update_production_line(line_id: int, payload: ProductionLineUpdate, db: Session = Depends(get_db)):
    line = _with_graph(db, line_id)
    if not line:
        raise HTTPException(404, "Production line not found")

    data = payload.model_dump(exclude_unset=True)

    if data.get("code"):
        new_code = data["code"].strip().upper()
        dup = db.query(ProductionLine).filter(ProductionLine.code == new_code, ProductionLine.id != line_id).first()
        if dup:
            raise HTTPException(409, "Duplicate production line code")
        line.code = new_code

    if data.get("name"):
        new_name = data["name"].strip()
        dup = db.query(ProductionLine).filter(ProductionLine.name == new_name, ProductionLine.id != line_id).first()
        if dup:
            raise HTTPException(409, "Duplicate production line name")
        line.name = new_name

    if "description" in data:
        line.description = data["description"]

    if payload.micro_lines is not None:
        line.micro_lines.clear()
        db.flush()
        line.micro_lines.extend(_micro_rows(db, payload.micro_lines))

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate micro line order in production line")
    return _with_graph(db, line.id)


# ---------- DELETE ----------
@router.delete("/{line_id}")
def delete_production_line(line_id: int, db: Session = Depends(get_db)):
    line = db.get(ProductionLine, line_id)
    if not line:
        raise HTTPException(404, "Production line not found")
    if db.query(ProductLayer).filter(ProductLayer.production_line_id == line_id).first():
        raise HTTPException(400, "Production line has layers; cannot delete")
    db.delete(line)
    db.commit()
    return {"message": "Production line deleted"}
