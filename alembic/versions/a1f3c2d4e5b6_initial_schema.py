"""initial schema

Revision ID: a1f3c2d4e5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1f3c2d4e5b6"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # ===== Masters (no FKs out) =====
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("en_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_customers_code"), "customers", ["code"], unique=True)

    op.create_table(
        "glasses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("thickness", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_glasses_code"), "glasses", ["code"], unique=True)

    op.create_table(
        "treatments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_treatments_code"), "treatments", ["code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_code"), "products", ["code"], unique=True)

    op.create_table(
        "production_inventories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("shape_code", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "shape_code IS NULL OR (shape_code BETWEEN 10 AND 30)", name="ck_inventory_shape_code"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_production_inventories_code"), "production_inventories", ["code"], unique=True)

    op.create_table(
        "doc_counters",
        sa.Column("doc_type", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("doc_type", "year"),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("design_number", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_invoices_code"), "invoices", ["code"], unique=True)
    op.create_index(op.f("ix_invoices_customer_id"), "invoices", ["customer_id"], unique=False)

    # ===== Production graph =====
    op.create_table(
        "steps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(), server_default="step", nullable=False),
        sa.Column("role", sa.String(), server_default="standard", nullable=False),
        sa.Column("requires_scan", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.CheckConstraint("type IN ('step', 'shelf')", name="ck_steps_type"),
        sa.CheckConstraint("role IN ('standard', 'optimizer', 'holding')", name="ck_steps_role"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_steps_code"), "steps", ["code"], unique=True)

    op.create_table(
        "step_treatments",
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("treatment_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["step_id"], ["steps.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["treatment_id"], ["treatments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("step_id", "treatment_id"),
    )

    op.create_table(
        "micro_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_micro_lines_code"), "micro_lines", ["code"], unique=True)

    op.create_table(
        "micro_line_steps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("micro_line_id", sa.Integer(), nullable=False),
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["micro_line_id"], ["micro_lines.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["step_id"], ["steps.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("micro_line_id", "order", name="uq_micro_line_step_order"),
    )
    op.create_index(op.f("ix_micro_line_steps_micro_line_id"), "micro_line_steps", ["micro_line_id"], unique=False)
    op.create_index(op.f("ix_micro_line_steps_step_id"), "micro_line_steps", ["step_id"], unique=False)

    op.create_table(
        "production_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_production_lines_code"), "production_lines", ["code"], unique=True)

    op.create_table(
        "production_line_micro_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_line_id", sa.Integer(), nullable=False),
        sa.Column("micro_line_id", sa.Integer(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["production_line_id"], ["production_lines.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["micro_line_id"], ["micro_lines.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("production_line_id", "order", name="uq_production_line_micro_line_order"),
    )
    op.create_index(
        op.f("ix_production_line_micro_lines_production_line_id"),
        "production_line_micro_lines", ["production_line_id"], unique=False,
    )
    op.create_index(
        op.f("ix_production_line_micro_lines_micro_line_id"),
        "production_line_micro_lines", ["micro_line_id"], unique=False,
    )

    # ===== Layers / history =====
    op.create_table(
        "product_layers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_code", sa.String(), nullable=False),
        sa.Column("glass_id", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("production_line_id", sa.Integer(), nullable=True),
        sa.Column("width", sa.Numeric(precision=10, scale=1), nullable=False),
        sa.Column("height", sa.Numeric(precision=10, scale=1), nullable=False),
        sa.Column("production_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("current_step_id", sa.Integer(), nullable=True),
        sa.Column("current_micro_line_id", sa.Integer(), nullable=True),
        sa.Column("current_inventory_id", sa.Integer(), nullable=True),
        sa.Column("production_notes", sa.Text(), nullable=True),
        sa.Column("design_number", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["glass_id"], ["glasses.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["production_line_id"], ["production_lines.id"]),
        sa.ForeignKeyConstraint(["current_step_id"], ["steps.id"]),
        sa.ForeignKeyConstraint(["current_micro_line_id"], ["micro_lines.id"]),
        sa.ForeignKeyConstraint(["current_inventory_id"], ["production_inventories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_layers_production_code"), "product_layers", ["production_code"], unique=True)
    op.create_index(op.f("ix_product_layers_product_id"), "product_layers", ["product_id"], unique=False)
    op.create_index(op.f("ix_product_layers_invoice_id"), "product_layers", ["invoice_id"], unique=False)
    op.create_index(op.f("ix_product_layers_production_line_id"), "product_layers", ["production_line_id"], unique=False)
    op.create_index(op.f("ix_product_layers_production_date"), "product_layers", ["production_date"], unique=False)
    op.create_index(op.f("ix_product_layers_current_step_id"), "product_layers", ["current_step_id"], unique=False)
    op.create_index(
        "ix_product_layers_line_step", "product_layers", ["production_line_id", "current_step_id"], unique=False
    )

    op.create_table(
        "product_layer_treatments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("layer_id", sa.Integer(), nullable=False),
        sa.Column("treatment_id", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=True),
        sa.Column("measurement", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["layer_id"], ["product_layers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["treatment_id"], ["treatments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_layer_treatments_layer_id"), "product_layer_treatments", ["layer_id"], unique=False)

    op.create_table(
        "step_executions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("layer_id", sa.Integer(), nullable=False),
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("production_line_id", sa.Integer(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("passed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["layer_id"], ["product_layers.id"]),
        sa.ForeignKeyConstraint(["step_id"], ["steps.id"]),
        sa.ForeignKeyConstraint(["production_line_id"], ["production_lines.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_step_executions_layer_id"), "step_executions", ["layer_id"], unique=False)
    op.create_index(op.f("ix_step_executions_step_id"), "step_executions", ["step_id"], unique=False)
    op.create_index(
        op.f("ix_step_executions_production_line_id"), "step_executions", ["production_line_id"], unique=False
    )
    op.create_index("ix_step_executions_layer_step", "step_executions", ["layer_id", "step_id"], unique=False)

    op.create_table(
        "step_execution_treatments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("execution_id", sa.Integer(), nullable=False),
        sa.Column("treatment_id", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=True),
        sa.Column("measurement", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["execution_id"], ["step_executions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["treatment_id"], ["treatments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_step_execution_treatments_execution_id"), "step_execution_treatments", ["execution_id"], unique=False
    )

    op.create_table(
        "reasons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reasons_code"), "reasons", ["code"], unique=True)

    op.create_table(
        "wasted_products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("layer_id", sa.Integer(), nullable=True),
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("reason_id", sa.Integer(), nullable=False),
        sa.Column("layer_width", sa.Numeric(10, 1), nullable=False),
        sa.Column("layer_height", sa.Numeric(10, 1), nullable=False),
        sa.Column("wasted_width", sa.Numeric(10, 1), nullable=False),
        sa.Column("wasted_height", sa.Numeric(10, 1), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("wasted_width >= 0 AND wasted_height >= 0", name="ck_wasted_products_non_negative"),
        sa.ForeignKeyConstraint(["layer_id"], ["product_layers.id"]),
        sa.ForeignKeyConstraint(["step_id"], ["steps.id"]),
        sa.ForeignKeyConstraint(["reason_id"], ["reasons.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_wasted_products_layer_id"), "wasted_products", ["layer_id"], unique=False)
    op.create_index(op.f("ix_wasted_products_step_id"), "wasted_products", ["step_id"], unique=False)
    op.create_index(op.f("ix_wasted_products_reason_id"), "wasted_products", ["reason_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("wasted_products")
    op.drop_table("reasons")
    op.drop_table("step_execution_treatments")
    op.drop_table("step_executions")
    op.drop_table("product_layer_treatments")
    op.drop_table("product_layers")
    op.drop_table("production_line_micro_lines")
    op.drop_table("production_lines")
    op.drop_table("micro_line_steps")
    op.drop_table("micro_lines")
    op.drop_table("step_treatments")
    op.drop_table("steps")
    op.drop_table("invoices")
    op.drop_table("doc_counters")
    op.drop_table("production_inventories")
    op.drop_table("products")
    op.drop_table("treatments")
    op.drop_table("glasses")
    op.drop_table("customers")
