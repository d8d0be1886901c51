# routers/v1/steps.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional

from database import get_db
from deps.security import get_password_hash
from models import Step, Treatment, MicroLineStep, ProductLayer, StepExecution, WastedProduct
from schemas import StepCreate, StepUpdate, StepOut
from services.optimization_queue import OPTIMIZER

router = APIRouter(prefix="/steps", tags=["steps"])


def _treatments(db: Session, ids: List[int]) -> List[Treatment]:
    rows = db.query(Treatment).filter(Treatment.id.in_(ids)).all() if ids else []
    missing = set(ids) - {t.id for t in rows}
    if missing:
        raise HTTPException(404, f"Treatment not found: {sorted(missing)}")
    return rows


def _default_role(name: str, step_type: str) -> str:
    if (name or "").strip().lower() == OPTIMIZER:
        return "optimizer"
    return "holding" if step_type == "shelf" else "standard"


# ---------- CREATE ----------
@router.post("", response_model=StepOut)
def create_step(payload: StepCreate, db: Session = Depends(get_db)):
    code = payload.code.strip().upper()
    if db.query(Step).filter(Step.code == code).first():
        raise HTTPException(409, "Duplicate step code")

    s = Step(
        code=code,
        name=payload.name.strip(),
        description=payload.description,
        type=payload.type,
        role=payload.role or _default_role(payload.name, payload.type),
        requires_scan=payload.requires_scan,
        password_hash=get_password_hash(payload.password) if payload.password else None,
        handles_treatments=_treatments(db, payload.handles_treatment_ids),
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


# ---------- LIST ----------
@router.get("", response_model=List[StepOut])
def list_steps(role: Optional[str] = None, db: Session = Depends(get_db)):
    q = db.query(Step).options(selectinload(Step.handles_treatments))
    if role:
        q = q.filter(Step.role == role)
    return q.order_by(Step.code.asc()).all()


# ---------- GET ----------
@router.get("/{step_id}", response_model=StepOut)
def get_step(step_id: int, db: Session = Depends(get_db)):
    s = db.get(Step, step_id)
    if not s:
        raise HTTPException(404, "Step not found")
    return s


# ---------- UPDATE ----------
@router.put("/{step_id}", response_model=StepOut)
def update_step(step_id: int, payload: StepUpdate, db: Session = Depends(get_db)):
    s = db.get(Step, step_id)
    if not s:
        raise HTTPException(404, "Step not found")

    data = payload.model_dump(exclude_unset=True)

    if data.get("code"):
        new_code = data["code"].strip().upper()
        dup = db.query(Step).filter(Step.code == new_code, Step.id != step_id).first()
        if dup:
            raise HTTPException(409, "Duplicate step code")
        s.code = new_code

    if "handles_treatment_ids" in data and data["handles_treatment_ids"] is not None:
        s.handles_treatments = _treatments(db, data["handles_treatment_ids"])

    if "password" in data:
        s.password_hash = get_password_hash(data["password"]) if data["password"] else None

    for k in ("name", "description", "type", "role", "requires_scan"):
        if k in data and data[k] is not None:
            setattr(s, k, data[k])

    db.commit()
    db.refresh(s)
    return s


# ---------- DELETE ----------
@router.delete("/{step_id}")
def delete_step(step_id: int, db: Session = Depends(get_db)):
    s = db.get(Step, step_id)
    if not s:
        raise HTTPException(404, "Step not found")
    if db.query(MicroLineStep).filter(MicroLineStep.step_id == step_id).first():
        raise HTTPException(400, "Step is used by a micro line; cannot delete")
    # scan history and layers parked on the step keep it alive
    for model, col in (
        (ProductLayer, ProductLayer.current_step_id),
        (StepExecution, StepExecution.step_id),
        (WastedProduct, WastedProduct.step_id),
    ):
        if db.query(model.id).filter(col == step_id).first():
            raise HTTPException(409, "Step is still referenced; cannot delete")
    db.delete(s)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Step is still referenced; cannot delete")
    return {"message": "Step deleted"}
