# routers/v1/optimizer.py
from fastapi import APIRouter, Depends
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models import ProductLayer, Step
from schemas import OptimizerQueueOut, ProductLayerOut
from services.layer_progress import LAYER_OPTIONS
from services.optimization_queue import OPTIMIZER, select_for_optimization

router = APIRouter(prefix="/optimizer", tags=["optimizer"])


@router.get("/queue", response_model=OptimizerQueueOut)
def get_optimizer_queue(db: Session = Depends(get_db)):
    """
    Layers waiting at the optimizer, oldest production date first.

    Not-started layers count when their line opens with the optimizer.
    No push channel exists; clients poll again after refresh_after_seconds.
    """
    candidates = (
        db.query(ProductLayer)
        .outerjoin(Step, Step.id == ProductLayer.current_step_id)
        .filter(
            or_(
                Step.role == OPTIMIZER,
                func.lower(func.trim(Step.name)) == OPTIMIZER,
                and_(
                    ProductLayer.current_step_id.is_(None),
                    ProductLayer.production_line_id.isnot(None),
                ),
            )
        )
        .options(*LAYER_OPTIONS)
        .all()
    )
    # unstarted candidates still need their line's first step checked
    items = select_for_optimization(candidates)
    return OptimizerQueueOut(
        items=[ProductLayerOut.model_validate(l) for l in items],
        total=len(items),
        refresh_after_seconds=settings.optimizer_poll_seconds,
    )
