# routers/v1/micro_lines.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from typing import List

from database import get_db
from models import MicroLine, MicroLineStep, ProductionLineMicroLine, ProductLayer, Step
from schemas import MicroLineCreate, MicroLineUpdate, MicroLineOut

router = APIRouter(prefix="/micro-lines", tags=["micro_lines"])


def _with_steps(db: Session, micro_line_id: int):
    return (
        db.query(MicroLine)
        .options(selectinload(MicroLine.steps).selectinload(MicroLineStep.step))
        .filter(MicroLine.id == micro_line_id)
        .first()
    )


def _step_rows(db: Session, items) -> List[MicroLineStep]:
    rows = []
    for it in items:
        if not db.get(Step, it.step_id):
            raise HTTPException(404, f"Step {it.step_id} not found")
        rows.append(MicroLineStep(step_id=it.step_id, order=it.order))
    return rows


# ---------- CREATE ----------
@router.post("", response_model=MicroLineOut)
def create_micro_line(payload: MicroLineCreate, db: Session = Depends(get_db)):
    code = payload.code.strip().upper()
    if db.query(MicroLine).filter(MicroLine.code == code).first():
        raise HTTPException(409, "Duplicate micro line code")

    m = MicroLine(
        code=code,
        name=payload.name.strip(),
        description=payload.description,
        steps=_step_rows(db, payload.steps),
    )
    db.add(m)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate step order in micro line")
    return _with_steps(db, m.id)


# ---------- LIST ----------
@router.get("", response_model=List[MicroLineOut])
def list_micro_lines(db: Session = Depends(get_db)):
    return (
        db.query(MicroLine)
        .options(selectinload(MicroLine.steps).selectinload(MicroLineStep.step))
        .order_by(MicroLine.code.asc())
        .all()
    )


# ---------- GET ----------
@router.get("/{micro_line_id}", response_model=MicroLineOut)
def get_micro_line(micro_line_id: int, db: Session = Depends(get_db)):
    m = _with_steps(db, micro_line_id)
    if not m:
        raise HTTPException(404, "Micro line not found")
    return m


# ---------- UPDATE ----------
@router.put("/{micro_line_id}", response_model=MicroLineOut)
def update_micro_line(micro_line_id: int, payload: MicroLineUpdate, db: Session = Depends(get_db)):
    m = _with_steps(db, micro_line_id)
    if not m:
        raise HTTPException(404, "Micro line not found")

    data = payload.model_dump(exclude_unset=True)

    if data.get("code"):
        new_code = data["code"].strip().upper()
        dup = db.query(MicroLine).filter(MicroLine.code == new_code, MicroLine.id != micro_line_id).first()
        if dup:
            raise HTTPException(409, "Duplicate micro line code")
        m.code = new_code

    if data.get("name"):
        m.name = data["name"].strip()
    if "description" in data:
        m.description = data["description"]

    if payload.steps is not None:
        # replace the whole sequence; flush the delete first so orders can be reused
        m.steps.clear()
        db.flush()
        m.steps.extend(_step_rows(db, payload.steps))

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Duplicate step order in micro line")
    return _with_steps(db, m.id)


# ---------- DELETE ----------
@router.delete("/{micro_line_id}")
def delete_micro_line(micro_line_id: int, db: Session = Depends(get_db)):
    m = db.get(MicroLine, micro_line_id)
    if not m:
        raise HTTPException(404, "Micro line not found")
    if db.query(ProductionLineMicroLine).filter(ProductionLineMicroLine.micro_line_id == micro_line_id).first():
        raise HTTPException(400, "Micro line is used by a production line; cannot delete")
    if db.query(ProductLayer.id).filter(ProductLayer.current_micro_line_id == micro_line_id).first():
        raise HTTPException(409, "Micro line is still referenced; cannot delete")
    db.delete(m)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Micro line is still referenced; cannot delete")
    return {"message": "Micro line deleted"}
