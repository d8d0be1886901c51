# routers/v1/__init__.py
from fastapi import APIRouter

from . import (
    steps, micro_lines, production_lines, product_layers,
    step_executions, optimizer, trf, catalog,
)

api_v1 = APIRouter()

# production graph
api_v1.include_router(steps.router)
api_v1.include_router(micro_lines.router)
api_v1.include_router(production_lines.router)

# layers + history
api_v1.include_router(product_layers.router)
api_v1.include_router(step_executions.router)

# optimizer station
api_v1.include_router(optimizer.router)
api_v1.include_router(trf.router)

# catalog tables (generic CRUD)
for r in catalog.routers:
    api_v1.include_router(r)

__all__ = ["api_v1"]
