# models.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from database import Base


STEP_TYPES = ("step", "shelf")
STEP_ROLES = ("standard", "optimizer", "holding")


# =========================================
# =============== Master ==================
# =========================================

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    en_name = Column(String, nullable=True)   # printed on TRF exports
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)

    invoices = relationship("Invoice", back_populates="customer")

    def __repr__(self):
        return f"<Customer(code={self.code}, name={self.name})>"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    delivery_date = Column(Date, nullable=True)
    design_number = Column(String, nullable=True)
    # pending / in progress / completed / cancelled / stop production
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="invoices")
    layers = relationship("ProductLayer", back_populates="invoice")

    def __repr__(self):
        return f"<Invoice(code={self.code}, status={self.status})>"


class Glass(Base):
    __tablename__ = "glasses"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    thickness = Column(Numeric(10, 2), nullable=True)  # mm

    def __repr__(self):
        return f"<Glass(code={self.code}, thickness={self.thickness})>"


class Treatment(Base):
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)  # ex. WATERJET, OJRATI, TEMPER
    name = Column(String, nullable=False)

    def __repr__(self):
        return f"<Treatment(code={self.code})>"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    def __repr__(self):
        return f"<Product(code={self.code})>"


class ProductionInventory(Base):
    """Physical holding location (rack / shelf) a layer can be parked in."""
    __tablename__ = "production_inventories"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False, default=0)
    location = Column(String, nullable=True)
    shape_code = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("shape_code IS NULL OR (shape_code BETWEEN 10 AND 30)", name="ck_inventory_shape_code"),
    )

    def __repr__(self):
        return f"<ProductionInventory(code={self.code})>"


# =========================================
# ========== Production graph =============
# =========================================

step_treatments = Table(
    "step_treatments",
    Base.metadata,
    Column("step_id", Integer, ForeignKey("steps.id", ondelete="CASCADE"), primary_key=True),
    Column("treatment_id", Integer, ForeignKey("treatments.id", ondelete="CASCADE"), primary_key=True),
)


class Step(Base):
    __tablename__ = "steps"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String, nullable=False, default="step", server_default="step")
    role = Column(String, nullable=False, default="standard", server_default="standard")
    requires_scan = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    password_hash = Column(String, nullable=True)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    handles_treatments = relationship("Treatment", secondary=step_treatments, order_by="Treatment.id")

    __table_args__ = (
        CheckConstraint("type IN ('step', 'shelf')", name="ck_steps_type"),
        CheckConstraint("role IN ('standard', 'optimizer', 'holding')", name="ck_steps_role"),
    )

    def __repr__(self):
        return f"<Step(code={self.code}, name={self.name}, role={self.role})>"


class MicroLine(Base):
    __tablename__ = "micro_lines"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    steps = relationship(
        "MicroLineStep",
        back_populates="micro_line",
        cascade="all, delete-orphan",
        order_by="MicroLineStep.order",
    )

    def __repr__(self):
        return f"<MicroLine(code={self.code})>"


class MicroLineStep(Base):
    __tablename__ = "micro_line_steps"

    id = Column(Integer, primary_key=True)
    micro_line_id = Column(Integer, ForeignKey("micro_lines.id", ondelete="CASCADE"), nullable=False, index=True)
    step_id = Column(Integer, ForeignKey("steps.id", ondelete="RESTRICT"), nullable=False, index=True)
    order = Column(Integer, nullable=False)

    micro_line = relationship("MicroLine", back_populates="steps")
    step = relationship("Step")

    __table_args__ = (
        UniqueConstraint("micro_line_id", "order", name="uq_micro_line_step_order"),
    )

    def __repr__(self):
        return f"<MicroLineStep(micro_line_id={self.micro_line_id}, step_id={self.step_id}, order={self.order})>"


class ProductionLine(Base):
    __tablename__ = "production_lines"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    micro_lines = relationship(
        "ProductionLineMicroLine",
        back_populates="production_line",
        cascade="all, delete-orphan",
        order_by="ProductionLineMicroLine.order",
    )

    def __repr__(self):
        return f"<ProductionLine(code={self.code}, name={self.name})>"


class ProductionLineMicroLine(Base):
    __tablename__ = "production_line_micro_lines"

    id = Column(Integer, primary_key=True)
    production_line_id = Column(
        Integer, ForeignKey("production_lines.id", ondelete="CASCADE"), nullable=False, index=True
    )
    micro_line_id = Column(Integer, ForeignKey("micro_lines.id", ondelete="RESTRICT"), nullable=False, index=True)
    order = Column(Integer, nullable=False)

    production_line = relationship("ProductionLine", back_populates="micro_lines")
    micro_line = relationship("MicroLine")

    __table_args__ = (
        UniqueConstraint("production_line_id", "order", name="uq_production_line_micro_line_order"),
    )

    def __repr__(self):
        return f"<ProductionLineMicroLine(line_id={self.production_line_id}, micro_line_id={self.micro_line_id}, order={self.order})>"


# =========================================
# ============ Layers / history ===========
# =========================================

class ProductLayer(Base):
    __tablename__ = "product_layers"

    id = Column(Integer, primary_key=True)
    production_code = Column(String, unique=True, index=True, nullable=False)

    glass_id = Column(Integer, ForeignKey("glasses.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    production_line_id = Column(Integer, ForeignKey("production_lines.id"), nullable=True, index=True)

    width = Column(Numeric(10, 1), nullable=False)   # mm
    height = Column(Numeric(10, 1), nullable=False)  # mm
    production_date = Column(DateTime(timezone=True), nullable=True, index=True)
    delivery_date = Column(Date, nullable=True)

    current_step_id = Column(Integer, ForeignKey("steps.id"), nullable=True, index=True)
    current_micro_line_id = Column(Integer, ForeignKey("micro_lines.id"), nullable=True)
    current_inventory_id = Column(Integer, ForeignKey("production_inventories.id"), nullable=True)

    production_notes = Column(Text, nullable=True)
    design_number = Column(String, nullable=True)

    # bumped on every position change; advancement is conditional on it
    version = Column(Integer, nullable=False, default=1, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    glass = relationship("Glass")
    product = relationship("Product")
    invoice = relationship("Invoice", back_populates="layers")
    production_line = relationship("ProductionLine")
    current_step = relationship("Step", foreign_keys=[current_step_id])
    current_micro_line = relationship("MicroLine", foreign_keys=[current_micro_line_id])
    current_inventory = relationship("ProductionInventory")
    treatments = relationship(
        "ProductLayerTreatment",
        back_populates="layer",
        cascade="all, delete-orphan",
        order_by="ProductLayerTreatment.id",
    )
    executions = relationship(
        "StepExecution",
        back_populates="layer",
        order_by="StepExecution.scanned_at",
    )

    __table_args__ = (
        Index("ix_product_layers_line_step", "production_line_id", "current_step_id"),
    )

    def __repr__(self):
        return f"<ProductLayer(production_code={self.production_code}, current_step_id={self.current_step_id})>"


class ProductLayerTreatment(Base):
    __tablename__ = "product_layer_treatments"

    id = Column(Integer, primary_key=True)
    layer_id = Column(Integer, ForeignKey("product_layers.id", ondelete="CASCADE"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False)
    count = Column(Integer, nullable=True)
    measurement = Column(String, nullable=True)

    layer = relationship("ProductLayer", back_populates="treatments")
    treatment = relationship("Treatment")


class StepExecution(Base):
    """Append-only audit row: a layer entered (passed=False) or completed a step."""
    __tablename__ = "step_executions"

    id = Column(Integer, primary_key=True)
    layer_id = Column(Integer, ForeignKey("product_layers.id"), nullable=False, index=True)
    step_id = Column(Integer, ForeignKey("steps.id"), nullable=False, index=True)
    production_line_id = Column(Integer, ForeignKey("production_lines.id"), nullable=False, index=True)

    scanned_at = Column(DateTime(timezone=True), nullable=False)
    passed = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    layer = relationship("ProductLayer", back_populates="executions")
    step = relationship("Step")
    production_line = relationship("ProductionLine")
    treatments_applied = relationship(
        "StepExecutionTreatment",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="StepExecutionTreatment.id",
    )

    __table_args__ = (
        Index("ix_step_executions_layer_step", "layer_id", "step_id"),
    )

    def __repr__(self):
        return f"<StepExecution(layer_id={self.layer_id}, step_id={self.step_id}, passed={self.passed})>"


class StepExecutionTreatment(Base):
    __tablename__ = "step_execution_treatments"

    id = Column(Integer, primary_key=True)
    execution_id = Column(Integer, ForeignKey("step_executions.id", ondelete="CASCADE"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False)
    count = Column(Integer, nullable=True)
    measurement = Column(String, nullable=True)

    execution = relationship("StepExecution", back_populates="treatments_applied")
    treatment = relationship("Treatment")


class Reason(Base):
    """Coded defect / waste reason picked at a station."""
    __tablename__ = "reasons"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=False)
    reason = Column(String, nullable=False)

    def __repr__(self):
        return f"<Reason(code={self.code})>"


class WastedProduct(Base):
    """Glass lost at a step: the layer's size and the wasted cut-off, with a reason."""
    __tablename__ = "wasted_products"

    id = Column(Integer, primary_key=True)
    layer_id = Column(Integer, ForeignKey("product_layers.id"), nullable=True, index=True)
    step_id = Column(Integer, ForeignKey("steps.id"), nullable=False, index=True)
    reason_id = Column(Integer, ForeignKey("reasons.id"), nullable=False, index=True)

    layer_width = Column(Numeric(10, 1), nullable=False)    # mm
    layer_height = Column(Numeric(10, 1), nullable=False)
    wasted_width = Column(Numeric(10, 1), nullable=False)
    wasted_height = Column(Numeric(10, 1), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    layer = relationship("ProductLayer")
    step = relationship("Step")
    reason = relationship("Reason")

    __table_args__ = (
        CheckConstraint(
            "wasted_width >= 0 AND wasted_height >= 0", name="ck_wasted_products_non_negative"
        ),
    )

    def __repr__(self):
        return f"<WastedProduct(step_id={self.step_id}, reason_id={self.reason_id})>"


class DocCounter(Base):
    """Yearly running numbers (production codes)."""
    __tablename__ = "doc_counters"

    doc_type = Column(String, primary_key=True)
    year = Column(Integer, primary_key=True)
    seq = Column(Integer, nullable=False, default=0)
