# routers/v1/step_executions.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from schemas import StepExecutionCreate, StepExecutionOut
from services.step_executions import list_step_executions, record_step_execution

router = APIRouter(prefix="/step-executions", tags=["step_executions"])


@router.post("", response_model=StepExecutionOut, status_code=201)
def create_step_execution(payload: StepExecutionCreate, db: Session = Depends(get_db)):
    """
    Append a history row (e.g. a defect found at a station) without moving
    the layer; advancing is POST /product-layers/{id}/advance.
    """
    return record_step_execution(
        db,
        layer_id=payload.layer_id,
        step_id=payload.step_id,
        production_line_id=payload.production_line_id,
        passed=payload.passed,
        notes=payload.notes,
        scanned_at=payload.scanned_at,
        treatments_applied=payload.treatments_applied,
    )


@router.get("", response_model=List[StepExecutionOut])
def get_step_executions(layer_id: Optional[int] = None, db: Session = Depends(get_db)):
    return list_step_executions(db, layer_id=layer_id)
