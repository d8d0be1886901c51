from __future__ import annotations

from typing import Optional, Literal, List, Any
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =========================
# ===== Base (Pydantic v2)
# =========================
class APIBase(BaseModel):
    """
    Base for every output schema:
    - from_attributes=True: build straight from ORM rows
    - Decimal -> float in JSON
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={Decimal: float}
    )


def _reject_duplicate_orders(items):
    orders = [i.order for i in items]
    if len(orders) != len(set(orders)):
        raise ValueError("order values must be unique")
    return items

# =========================================
# ================ Steps ==================
# =========================================
StepType = Literal["step", "shelf"]
StepRole = Literal["standard", "optimizer", "holding"]

class TreatmentMini(APIBase):
    id: int
    code: str
    name: str

class StepCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    type: StepType = "step"
    role: Optional[StepRole] = None      # None -> derived from name
    requires_scan: bool = True
    handles_treatment_ids: List[int] = []
    password: Optional[str] = None

class StepUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[StepType] = None
    role: Optional[StepRole] = None
    requires_scan: Optional[bool] = None
    handles_treatment_ids: Optional[List[int]] = None
    password: Optional[str] = None

class StepOut(APIBase):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    type: str
    role: str
    requires_scan: bool
    handles_treatments: List[TreatmentMini] = []
    has_password: bool = False

class StepMini(APIBase):
    id: int
    code: str
    name: str
    role: Optional[str] = None

# =========================================
# ============== Micro lines ==============
# =========================================
class MicroLineStepIn(BaseModel):
    step_id: int
    order: int

class MicroLineCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    steps: List[MicroLineStepIn] = []

    @field_validator("steps")
    @classmethod
    def _unique_orders(cls, v):
        return _reject_duplicate_orders(v)

class MicroLineUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    steps: Optional[List[MicroLineStepIn]] = None

    @field_validator("steps")
    @classmethod
    def _unique_orders(cls, v):
        return v if v is None else _reject_duplicate_orders(v)

class MicroLineStepOut(APIBase):
    order: int
    step: StepMini

class MicroLineOut(APIBase):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    steps: List[MicroLineStepOut] = []

# =========================================
# =========== Production lines ============
# =========================================
class LineMicroLineIn(BaseModel):
    micro_line_id: int
    order: int

class ProductionLineCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    micro_lines: List[LineMicroLineIn] = []

    @field_validator("micro_lines")
    @classmethod
    def _unique_orders(cls, v):
        return _reject_duplicate_orders(v)

class ProductionLineUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    micro_lines: Optional[List[LineMicroLineIn]] = None

    @field_validator("micro_lines")
    @classmethod
    def _unique_orders(cls, v):
        return v if v is None else _reject_duplicate_orders(v)

class LineMicroLineOut(APIBase):
    order: int
    micro_line: MicroLineOut

class ProductionLineOut(APIBase):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    micro_lines: List[LineMicroLineOut] = []

class FlatStepOut(BaseModel):
    global_index: int
    micro_line_index: int
    step_index: int
    order: int
    step_id: Optional[str] = None
    step_name: Optional[str] = None
    micro_line_id: Optional[str] = None

# =========================================
# ============= Product layers ============
# =========================================
class LayerTreatmentIn(BaseModel):
    treatment_id: int
    count: Optional[int] = None
    measurement: Optional[str] = None

class LayerTreatmentOut(APIBase):
    count: Optional[int] = None
    measurement: Optional[str] = None
    treatment: TreatmentMini

class ProductLayerCreate(BaseModel):
    production_code: Optional[str] = None    # empty / AUTO -> generated
    glass_id: Optional[int] = None
    product_id: Optional[int] = None
    invoice_id: Optional[int] = None
    production_line_id: Optional[int] = None
    width: Decimal = Field(gt=0)
    height: Decimal = Field(gt=0)
    production_date: Optional[datetime] = None
    delivery_date: Optional[date] = None
    current_step_id: Optional[int] = None
    current_inventory_id: Optional[int] = None
    production_notes: Optional[str] = None
    design_number: Optional[str] = None
    treatments: List[LayerTreatmentIn] = []

class ProductLayerOut(APIBase):
    id: int
    production_code: str
    glass_id: Optional[int] = None
    product_id: Optional[int] = None
    invoice_id: Optional[int] = None
    production_line_id: Optional[int] = None
    width: Decimal
    height: Decimal
    production_date: Optional[datetime] = None
    delivery_date: Optional[date] = None
    current_step: Optional[StepMini] = None
    current_micro_line_id: Optional[int] = None
    current_inventory_id: Optional[int] = None
    production_notes: Optional[str] = None
    design_number: Optional[str] = None
    version: int
    treatments: List[LayerTreatmentOut] = []

class NextStepOut(BaseModel):
    layer_id: int
    current_step_id: Optional[int] = None
    completed: bool = False
    next_step: Optional[StepMini] = None
    step_id: Optional[str] = None
    micro_line_id: Optional[str] = None
    is_new_micro_line: bool = False
    warning: Optional[str] = None

class AdvanceIn(BaseModel):
    expected_step_id: Optional[int] = None
    expected_version: Optional[int] = None
    notes: Optional[str] = None
    treatments_applied: List[LayerTreatmentIn] = []

class AdvanceOut(BaseModel):
    layer_id: Any
    status: Literal["advanced", "completed", "failed"]
    from_step_id: Optional[int] = None
    to_step_id: Optional[int] = None
    micro_line_id: Optional[int] = None
    is_new_micro_line: bool = False
    version: Optional[int] = None
    warning: Optional[str] = None
    error: Optional[str] = None

class AdvanceBatchIn(BaseModel):
    layer_ids: List[int] = Field(min_length=1)

class AdvanceBatchOut(BaseModel):
    results: List[AdvanceOut]
    advanced: int
    failed: int

class InventoryMoveIn(BaseModel):
    inventory_id: Optional[int] = None

# =========================================
# ============ Step executions ============
# =========================================
class StepExecutionCreate(BaseModel):
    # ids are Optional so the service reports a missing one as a domain error
    layer_id: Optional[int] = None
    step_id: Optional[int] = None
    production_line_id: Optional[int] = None
    passed: bool = False
    notes: Optional[str] = None
    scanned_at: Optional[datetime] = None
    treatments_applied: List[LayerTreatmentIn] = []

class StepExecutionOut(APIBase):
    id: int
    layer_id: int
    step_id: int
    production_line_id: int
    scanned_at: datetime
    passed: bool
    notes: Optional[str] = None
    step: Optional[StepMini] = None
    treatments_applied: List[LayerTreatmentOut] = []

# =========================================
# =============== Optimizer ===============
# =========================================
class OptimizerQueueOut(BaseModel):
    items: List[ProductLayerOut]
    total: int
    refresh_after_seconds: int

# =========================================
# ================== TRF ==================
# =========================================
class TrfRequest(BaseModel):
    layer_ids: Optional[List[int]] = None
    # inline snapshots (same field names as ProductLayerOut, relations nested)
    selected_layers: Optional[List[dict]] = None

class TrfOut(BaseModel):
    success: bool = True
    message: str = "TRF file generated successfully"
    fileName: str
    downloadUrl: str
    layersProcessed: int
    generatedAt: datetime
