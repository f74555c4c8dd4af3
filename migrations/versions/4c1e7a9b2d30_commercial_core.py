"""commercial core: customers, vendors, sales, commissions, payment batches

Revision ID: 4c1e7a9b2d30
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "4c1e7a9b2d30"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    return sa.inspect(bind).has_table(table_name)


def _index_exists(bind, table_name: str, index_name: str) -> bool:
    indexes = sa.inspect(bind).get_indexes(table_name)
    return any((idx.get("name") or "") == index_name for idx in indexes)


def _create_indexes(bind, table_name: str, columns: list[str]) -> None:
    for column in columns:
        name = f"ix_{table_name}_{column}"
        if not _index_exists(bind, table_name, name):
            op.create_index(name, table_name, [column], unique=False)


def upgrade():
    bind = op.get_bind()

    if not _table_exists(bind, "vendors"):
        op.create_table(
            "vendors",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("commission_bps", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("manager_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=True),
            sa.Column("is_manager", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
    if not _index_exists(bind, "vendors", "ix_vendors_email"):
        op.create_index("ix_vendors_email", "vendors", ["email"], unique=True)
    _create_indexes(bind, "vendors", ["manager_id"])

    if not _table_exists(bind, "customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=160), nullable=False),
            sa.Column("customer_type", sa.String(length=64), nullable=True),
            sa.Column("document", sa.String(length=18), nullable=True),
            sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=True),
            sa.Column("special_discount_bps", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("revenue_bracket", sa.String(length=32), nullable=True),
            sa.Column("b2b_discount_bps", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
    _create_indexes(bind, "customers", ["customer_type", "document", "vendor_id"])

    if not _table_exists(bind, "customer_category_discounts"):
        op.create_table(
            "customer_category_discounts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("category", sa.String(length=32), nullable=False),
            sa.Column("percent_bps", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint("customer_id", "category", name="uq_customer_category_discount"),
        )
    _create_indexes(bind, "customer_category_discounts", ["customer_id"])

    if not _table_exists(bind, "commission_configs"):
        op.create_table(
            "commission_configs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("percent_bps", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("beneficiary_email", sa.String(length=255), nullable=False),
            sa.Column("beneficiary_name", sa.String(length=120), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
    _create_indexes(bind, "commission_configs", ["kind", "is_active"])

    if not _table_exists(bind, "sales"):
        op.create_table(
            "sales",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
            sa.Column("subtotal_minor", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("discount_type", sa.String(length=32), nullable=False, server_default="none"),
            sa.Column("discount_minor", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_minor", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=32), nullable=True),
            sa.Column("origin", sa.String(length=16), nullable=False, server_default="faturado"),
            sa.Column("billing_term", sa.String(length=16), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
            sa.Column("confirmed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
    _create_indexes(bind, "sales", ["vendor_id", "customer_id", "status"])

    if not _table_exists(bind, "sale_installments"):
        op.create_table(
            "sale_installments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("total_count", sa.Integer(), nullable=False),
            sa.Column("amount_minor", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint("sale_id", "number", name="uq_sale_installment_number"),
        )
    _create_indexes(bind, "sale_installments", ["sale_id", "due_date", "status"])

    if not _table_exists(bind, "payment_batches"):
        op.create_table(
            "payment_batches",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("reference", sa.String(length=120), nullable=False),
            sa.Column("beneficiary_email", sa.String(length=255), nullable=False),
            sa.Column("period", sa.String(length=7), nullable=False),
            sa.Column("total_minor", sa.Integer(), nullable=False),
            sa.Column("item_count", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
        )
    _create_indexes(bind, "payment_batches", ["beneficiary_email", "period", "status"])

    if not _table_exists(bind, "commission_records"):
        op.create_table(
            "commission_records",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("parcel_ref", sa.String(length=64), nullable=False),
            sa.Column("beneficiary_type", sa.String(length=16), nullable=False),
            sa.Column("beneficiary_id", sa.Integer(), nullable=True),
            sa.Column("beneficiary_email", sa.String(length=255), nullable=False),
            sa.Column("beneficiary_name", sa.String(length=120), nullable=True),
            sa.Column("origin_vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=True),
            sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
            sa.Column("installment_id", sa.Integer(), sa.ForeignKey("sale_installments.id"), nullable=True),
            sa.Column("sale_amount_minor", sa.Integer(), nullable=False),
            sa.Column("percent_bps", sa.Integer(), nullable=False),
            sa.Column("amount_minor", sa.Integer(), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("released_at", sa.DateTime(), nullable=True),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
            sa.Column("batch_id", sa.Integer(), sa.ForeignKey("payment_batches.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("parcel_ref", "beneficiary_type", name="uq_commission_parcel_beneficiary"),
        )
    _create_indexes(
        bind,
        "commission_records",
        [
            "parcel_ref",
            "beneficiary_id",
            "beneficiary_email",
            "origin_vendor_id",
            "sale_id",
            "installment_id",
            "due_date",
            "status",
            "batch_id",
        ],
    )

    if not _table_exists(bind, "commission_transitions"):
        op.create_table(
            "commission_transitions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("commission_id", sa.Integer(), sa.ForeignKey("commission_records.id"), nullable=False),
            sa.Column("from_status", sa.String(length=16), nullable=False),
            sa.Column("to_status", sa.String(length=16), nullable=False),
            sa.Column("actor_type", sa.String(length=32), nullable=False),
            sa.Column("actor_id", sa.String(length=64), nullable=True),
            sa.Column("reason", sa.String(length=240), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
    _create_indexes(bind, "commission_transitions", ["commission_id"])

    if not _table_exists(bind, "job_runs"):
        op.create_table(
            "job_runs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("job_name", sa.String(length=64), nullable=False),
            sa.Column("ran_at", sa.DateTime(), nullable=False),
            sa.Column("ok", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("duration_ms", sa.Integer(), nullable=True),
            sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("error", sa.Text(), nullable=True),
        )
    _create_indexes(bind, "job_runs", ["job_name", "ran_at", "ok"])


def downgrade():
    for table_name in (
        "job_runs",
        "commission_transitions",
        "commission_records",
        "payment_batches",
        "sale_installments",
        "sales",
        "commission_configs",
        "customer_category_discounts",
        "customers",
        "vendors",
    ):
        op.drop_table(table_name)
