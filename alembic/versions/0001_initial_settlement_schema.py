"""initial settlement schema

Revision ID: 0001_settlement
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_settlement"
down_revision = None
branch_labels = None
depends_on = None


ENUM_TYPES = {
    "commission_type": ("percentage", "fixed", "mixed", "tiered"),
    "service_status": (
        "pending", "dispatched", "in_transit", "on_site", "in_progress", "completed", "invoiced", "cancelled",
    ),
    "service_priority": ("low", "normal", "high", "urgent"),
    "operator_role": ("primary", "assistant", "supervisor"),
    "closure_status": ("draft", "approved", "invoicing", "invoiced", "cancelled"),
    "invoice_status": ("draft", "sent", "pending", "overdue", "partial", "paid", "cancelled"),
    "cancellation_reason": (
        "client_data_error", "amount_error", "service_not_provided", "duplicate", "client_request", "other",
    ),
    "payment_status": ("pending", "confirmed", "rejected"),
    "payment_method": ("cash", "transfer", "check", "card"),
    "reconciliation_status": ("unmatched", "matched"),
    "liquidation_status": ("pending", "approved", "paid", "cancelled"),
}


def enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable)


def base_columns() -> list:
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    for name, values in ENUM_TYPES.items():
        quoted = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({quoted})")

    # Lookups
    op.create_table(
        "clients",
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=True),
        sa.Column("tax_id", sa.String(50), nullable=True),
        *base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "operators",
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("employee_number", sa.String(50), nullable=True),
        sa.Column("commission_type", enum("commission_type"), nullable=True),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=True),
        money("commission_fixed_amount", nullable=True),
        sa.Column("commission_tiers", sa.JSON(), nullable=True),
        *base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_number"),
    )
    op.create_table(
        "cranes",
        sa.Column("unit_number", sa.String(50), nullable=False),
        *base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("unit_number"),
    )
    op.create_table(
        "payment_terms",
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        *base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "folio_sequences",
        sa.Column("name", sa.String(20), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False),
        *base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Field operations
    op.create_table(
        "services",
        sa.Column("folio", sa.String(30), nullable=False),
        sa.Column("status", enum("service_status"), nullable=False),
        sa.Column("priority", enum("service_priority"), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("crane_id", sa.UUID(), nullable=True),
        sa.Column("operator_id", sa.UUID(), nullable=True),
        money("subtotal"),
        money("total"),
        sa.Column("quote_number", sa.String(50), nullable=True),
        sa.Column("purchase_order_number", sa.String(50), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *base_columns(),
        sa.CheckConstraint("total >= 0", name="ck_services_total_non_negative"),
        sa.CheckConstraint("subtotal >= 0", name="ck_services_subtotal_non_negative"),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["crane_id"], ["cranes.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["operator_id"], ["operators.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_services_folio"), "services", ["folio"], unique=True)
    op.create_index(op.f("ix_services_status"), "services", ["status"], unique=False)
    op.create_index(op.f("ix_services_scheduled_date"), "services", ["scheduled_date"], unique=False)
    op.create_index(op.f("ix_services_client_id"), "services", ["client_id"], unique=False)
    op.create_index(op.f("ix_services_operator_id"), "services", ["operator_id"], unique=False)

    op.create_table(
        "service_operators",
        sa.Column("service_id", sa.UUID(), nullable=False),
        sa.Column("operator_id", sa.UUID(), nullable=False),
        sa.Column("role", enum("operator_role"), nullable=False),
        money("commission_override", nullable=True),
        *base_columns(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["operator_id"], ["operators.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("service_id", "operator_id", "role", name="uq_service_operators_service_operator_role"),
    )
    op.create_index(op.f("ix_service_operators_service_id"), "service_operators", ["service_id"], unique=False)
    op.create_index(op.f("ix_service_operators_operator_id"), "service_operators", ["operator_id"], unique=False)

    # Billing
    op.create_table(
        "billing_closures",
        sa.Column("folio", sa.String(30), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("services_count", sa.Integer(), nullable=False),
        money("subtotal"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        money("tax_amount"),
        money("total"),
        sa.Column("status", enum("closure_status"), nullable=False),
        sa.Column("invoice_id", sa.UUID(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.UUID(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *base_columns(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id"),
    )
    op.create_index(op.f("ix_billing_closures_folio"), "billing_closures", ["folio"], unique=True)
    op.create_index(op.f("ix_billing_closures_status"), "billing_closures", ["status"], unique=False)
    op.create_index(op.f("ix_billing_closures_client_id"), "billing_closures", ["client_id"], unique=False)

    op.create_table(
        "billing_closure_services",
        sa.Column("closure_id", sa.UUID(), nullable=False),
        sa.Column("service_id", sa.UUID(), nullable=False),
        sa.Column("service_folio", sa.String(30), nullable=False),
        sa.Column("service_date", sa.Date(), nullable=False),
        money("subtotal"),
        money("total"),
        *base_columns(),
        sa.ForeignKeyConstraint(["closure_id"], ["billing_closures.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("service_id"),
    )
    op.create_index(
        op.f("ix_billing_closure_services_closure_id"), "billing_closure_services", ["closure_id"], unique=False
    )

    op.create_table(
        "invoices",
        sa.Column("folio", sa.String(30), nullable=False),
        sa.Column("billing_closure_id", sa.UUID(), nullable=False),
        sa.Column("fiscal_folio", sa.String(50), nullable=False),
        sa.Column("payment_terms_id", sa.UUID(), nullable=True),
        money("subtotal"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        money("tax_amount"),
        money("total"),
        money("balance_due"),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", enum("invoice_status"), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", enum("cancellation_reason"), nullable=True),
        sa.Column("cancellation_details", sa.Text(), nullable=True),
        sa.Column("credit_note_number", sa.String(50), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *base_columns(),
        sa.CheckConstraint("balance_due >= 0", name="ck_invoices_balance_non_negative"),
        sa.ForeignKeyConstraint(["billing_closure_id"], ["billing_closures.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["payment_terms_id"], ["payment_terms.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("billing_closure_id"),
    )
    op.create_index(op.f("ix_invoices_folio"), "invoices", ["folio"], unique=True)
    op.create_index(op.f("ix_invoices_status"), "invoices", ["status"], unique=False)
    op.create_index(op.f("ix_invoices_due_date"), "invoices", ["due_date"], unique=False)
    op.create_index(op.f("ix_invoices_client_id"), "invoices", ["client_id"], unique=False)

    # Payments
    op.create_table(
        "payments",
        sa.Column("invoice_id", sa.UUID(), nullable=True),
        money("amount"),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", enum("payment_method"), nullable=False),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("status", enum("payment_status"), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("confirmed_by", sa.UUID(), nullable=True),
        sa.Column("bank_transaction_id", sa.UUID(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *base_columns(),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bank_transaction_id"),
    )
    op.create_index(op.f("ix_payments_invoice_id"), "payments", ["invoice_id"], unique=False)
    op.create_index(op.f("ix_payments_status"), "payments", ["status"], unique=False)
    op.create_index(op.f("ix_payments_client_id"), "payments", ["client_id"], unique=False)

    op.create_table(
        "bank_transactions",
        sa.Column("description", sa.String(500), nullable=False),
        money("amount"),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("status", enum("reconciliation_status"), nullable=False),
        sa.Column("matched_payment_id", sa.UUID(), nullable=True),
        sa.Column("matched_at", sa.DateTime(), nullable=True),
        sa.Column("matched_by", sa.UUID(), nullable=True),
        sa.Column("import_batch", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *base_columns(),
        sa.ForeignKeyConstraint(["matched_payment_id"], ["payments.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("matched_payment_id"),
    )
    op.create_index(op.f("ix_bank_transactions_status"), "bank_transactions", ["status"], unique=False)
    op.create_index(
        op.f("ix_bank_transactions_transaction_date"), "bank_transactions", ["transaction_date"], unique=False
    )
    op.create_index(op.f("ix_bank_transactions_import_batch"), "bank_transactions", ["import_batch"], unique=False)

    # Commissions
    op.create_table(
        "commission_liquidations",
        sa.Column("folio", sa.String(30), nullable=False),
        sa.Column("operator_id", sa.UUID(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("services_count", sa.Integer(), nullable=False),
        money("total_services_value"),
        money("calculated_amount"),
        money("bonus"),
        money("deductions"),
        money("total_amount"),
        sa.Column("status", enum("liquidation_status"), nullable=False),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.UUID(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("adjustment_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *base_columns(),
        sa.ForeignKeyConstraint(["operator_id"], ["operators.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_commission_liquidations_folio"), "commission_liquidations", ["folio"], unique=True)
    op.create_index(
        op.f("ix_commission_liquidations_operator_id"), "commission_liquidations", ["operator_id"], unique=False
    )
    op.create_index(op.f("ix_commission_liquidations_status"), "commission_liquidations", ["status"], unique=False)

    op.create_table(
        "commission_entries",
        sa.Column("service_id", sa.UUID(), nullable=False),
        sa.Column("operator_id", sa.UUID(), nullable=False),
        sa.Column("role", enum("operator_role"), nullable=False),
        money("commission_amount"),
        sa.Column("liquidation_id", sa.UUID(), nullable=True),
        *base_columns(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["operator_id"], ["operators.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["liquidation_id"], ["commission_liquidations.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "service_id", "operator_id", "role", name="uq_commission_entries_service_operator_role"
        ),
    )
    op.create_index(op.f("ix_commission_entries_service_id"), "commission_entries", ["service_id"], unique=False)
    op.create_index(op.f("ix_commission_entries_operator_id"), "commission_entries", ["operator_id"], unique=False)
    op.create_index(
        op.f("ix_commission_entries_liquidation_id"), "commission_entries", ["liquidation_id"], unique=False
    )


def downgrade() -> None:
    for table in (
        "commission_entries",
        "commission_liquidations",
        "bank_transactions",
        "payments",
        "invoices",
        "billing_closure_services",
        "billing_closures",
        "service_operators",
        "services",
        "folio_sequences",
        "payment_terms",
        "cranes",
        "operators",
        "clients",
    ):
        op.drop_table(table)
    for name in reversed(list(ENUM_TYPES)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
