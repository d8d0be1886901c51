# generic_router.py
import logging
from typing import Callable, List, Optional, Sequence

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from utils import sa_to_dict, sa_update_from_dict

logger = logging.getLogger(__name__)

Hook = Callable[..., None]


def make_crud_router(
    Model,
    prefix: str,
    pk: str = "id",
    list_order_by=None,
    unique_fields: Sequence[str] = (),
    search_fields: Sequence[str] = ("code", "name"),
    filter_fields: Sequence[str] = (),
    allow_fields: Optional[List[str]] = None,
    before_create: Optional[Hook] = None,
    before_update: Optional[Hook] = None,
):
    """
    Plain CRUD router for catalog tables (glass, treatments, customers ...):

    - GET    /{prefix}?q=     list, optional ilike search over search_fields
                             and exact match on filter_fields (?step_id=3)
    - GET    /{prefix}/{id}   one row
    - POST   /{prefix}        create (unique_fields checked first)
    - PUT    /{prefix}/{id}   partial update
    - DELETE /{prefix}/{id}   delete; 409 while other rows still point at it

    Hooks get the raw dict and may normalise it in place or raise HTTPException:
    ``before_create(db, data)`` and ``before_update(db, obj, data)``.
    """
    router = APIRouter(prefix=f"/{prefix}", tags=[prefix])
    label = Model.__name__
    writable = allow_fields or [c.key for c in Model.__table__.columns if c.key != pk]
    searchable = [getattr(Model, f) for f in search_fields if hasattr(Model, f)]

    def _get_or_404(db: Session, item_id: int):
        obj = db.get(Model, item_id)
        if not obj:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return obj

    def _check_unique(db: Session, data: dict, own_id=None):
        for f in unique_fields:
            if data.get(f) is None:
                continue
            hit = db.scalars(select(Model).where(getattr(Model, f) == data[f])).first()
            if hit is not None and getattr(hit, pk) != own_id:
                raise HTTPException(status_code=409, detail=f"{f} already exists")

    def _commit(db: Session, detail: str):
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail=detail)

    @router.get("")
    def list_items(request: Request, q: Optional[str] = Query(None), db: Session = Depends(get_db)):
        stmt = select(Model)
        for f in filter_fields:
            raw = request.query_params.get(f)
            if raw is None:
                continue
            col = getattr(Model, f)
            try:
                value = col.type.python_type(raw)
            except (TypeError, ValueError):
                raise HTTPException(status_code=400, detail=f"invalid {f}")
            stmt = stmt.where(col == value)
        if q and searchable:
            like = f"%{q.strip()}%"
            stmt = stmt.where(or_(*[col.ilike(like) for col in searchable]))
        if list_order_by is not None:
            stmt = stmt.order_by(list_order_by)
        return [sa_to_dict(r) for r in db.scalars(stmt).all()]

    @router.get("/{item_id}")
    def get_item(item_id: int, db: Session = Depends(get_db)):
        return sa_to_dict(_get_or_404(db, item_id))

    @router.post("", status_code=status.HTTP_201_CREATED)
    def create_item(payload: dict = Body(...), db: Session = Depends(get_db)):
        data = dict(payload or {})
        _check_unique(db, data)
        if before_create:
            before_create(db, data)

        obj = sa_update_from_dict(Model(), data, allow_fields=writable)
        db.add(obj)
        _commit(db, f"{label}: constraint violation")
        db.refresh(obj)
        logger.info("%s %s created", label, getattr(obj, pk))
        return sa_to_dict(obj)

    @router.put("/{item_id}")
    def update_item(item_id: int, payload: dict = Body(...), db: Session = Depends(get_db)):
        obj = _get_or_404(db, item_id)
        data = dict(payload or {})
        _check_unique(db, data, own_id=getattr(obj, pk))
        if before_update:
            before_update(db, obj, data)

        sa_update_from_dict(obj, data, allow_fields=writable)
        _commit(db, f"{label}: constraint violation")
        db.refresh(obj)
        return sa_to_dict(obj)

    @router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_item(item_id: int, db: Session = Depends(get_db)):
        obj = _get_or_404(db, item_id)
        db.delete(obj)
        _commit(db, f"{label} is still referenced; cannot delete")
        logger.info("%s %s deleted", label, item_id)
        return None

    return router
