# routers/v1/catalog.py
from datetime import date
from decimal import Decimal, InvalidOperation

from fastapi import HTTPException
from sqlalchemy.orm import Session

from generic_router import make_crud_router
from models import (
    Customer,
    Glass,
    Invoice,
    Product,
    ProductionInventory,
    ProductLayer,
    Reason,
    Step,
    Treatment,
    WastedProduct,
)

WASTE_SIZES = ("layer_width", "layer_height", "wasted_width", "wasted_height")


def _invoice_dates(db: Session, data: dict, obj=None):
    if isinstance(data.get("delivery_date"), str):
        try:
            data["delivery_date"] = date.fromisoformat(data["delivery_date"])
        except ValueError:
            raise HTTPException(400, "delivery_date must be YYYY-MM-DD")
    if data.get("customer_id") is not None and not db.get(Customer, data["customer_id"]):
        raise HTTPException(404, "Customer not found")


def _waste_refs(db: Session, data: dict, obj=None):
    """Wasted glass always names a step and a reason; layer is optional."""
    for key, model in (("step_id", Step), ("reason_id", Reason)):
        if key in data or obj is None:
            if data.get(key) is None:
                raise HTTPException(400, f"{key} is required")
            if not db.get(model, data[key]):
                raise HTTPException(404, f"{model.__name__} not found")

    layer = None
    if data.get("layer_id") is not None:
        layer = db.get(ProductLayer, data["layer_id"])
        if not layer:
            raise HTTPException(404, "ProductLayer not found")

    if obj is None and layer is not None:
        # layer size defaults to the scanned layer
        data.setdefault("layer_width", layer.width)
        data.setdefault("layer_height", layer.height)

    for key in WASTE_SIZES:
        if key not in data:
            if obj is None:
                raise HTTPException(400, f"{key} is required")
            continue
        try:
            value = Decimal(str(data[key]))
        except (InvalidOperation, ValueError):
            raise HTTPException(400, f"{key} must be a number")
        if value < 0:
            raise HTTPException(400, f"{key} must be >= 0")
        data[key] = value


glasses = make_crud_router(Glass, "glasses", list_order_by=Glass.code, unique_fields=["code"])
treatments = make_crud_router(Treatment, "treatments", list_order_by=Treatment.code, unique_fields=["code"])
customers = make_crud_router(
    Customer, "customers",
    list_order_by=Customer.code, unique_fields=["code"], search_fields=("code", "name", "en_name"),
)
products = make_crud_router(Product, "products", list_order_by=Product.code, unique_fields=["code"])
inventories = make_crud_router(
    ProductionInventory, "production-inventories",
    list_order_by=ProductionInventory.code, unique_fields=["code"],
)
invoices = make_crud_router(
    Invoice, "invoices",
    list_order_by=Invoice.id.desc(),
    unique_fields=["code"],
    search_fields=("code", "design_number"),
    allow_fields=["code", "customer_id", "delivery_date", "design_number", "status"],
    before_create=lambda db, data: _invoice_dates(db, data),
    before_update=lambda db, obj, data: _invoice_dates(db, data, obj),
)
reasons = make_crud_router(
    Reason, "reasons",
    list_order_by=Reason.code, unique_fields=["code"], search_fields=("code", "reason"),
)
wasted_products = make_crud_router(
    WastedProduct, "wasted-products",
    list_order_by=WastedProduct.id.desc(),
    search_fields=(),
    filter_fields=("step_id", "reason_id", "layer_id"),
    allow_fields=["layer_id", "step_id", "reason_id", *WASTE_SIZES],
    before_create=lambda db, data: _waste_refs(db, data),
    before_update=lambda db, obj, data: _waste_refs(db, data, obj),
)

routers = [glasses, treatments, customers, products, inventories, invoices, reasons, wasted_products]
