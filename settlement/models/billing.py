"""Billing: closures, their member snapshots and invoices"""

from sqlalchemy import (
    CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
)

from settlement.models.base import ActorStampMixin, BaseModel, ClientScopedMixin, enum_column, money_column
from settlement.models.enums import CancellationReason, ClosureStatus, InvoiceStatus


class BillingClosure(BaseModel, ClientScopedMixin, ActorStampMixin):
    """
    Client-period aggregate of completed services awaiting invoicing.
    Totals are computed once at creation; tax is rounded here and only here.
    """
    __tablename__ = "billing_closures"

    folio = Column(String(30), nullable=False, unique=True, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    services_count = Column(Integer, nullable=False, default=0)
    subtotal = money_column(default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_amount = money_column(default=0)
    total = money_column(default=0)
    status = enum_column(ClosureStatus, "closure_status", default=ClosureStatus.DRAFT, nullable=False, index=True)
    # Set only by the approved -> invoicing claim; no FK to keep closures/invoices acyclic
    invoice_id = Column(Uuid(as_uuid=True), nullable=True, unique=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Uuid(as_uuid=True), nullable=True)
    notes = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BillingClosure {self.folio} - {self.status}>"


class BillingClosureService(BaseModel):
    """Snapshot of a service as it was when added to a closure"""
    __tablename__ = "billing_closure_services"

    closure_id = Column(
        Uuid(as_uuid=True), ForeignKey("billing_closures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # A service belongs to at most one closure
    service_id = Column(
        Uuid(as_uuid=True), ForeignKey("services.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    service_folio = Column(String(30), nullable=False)
    service_date = Column(Date, nullable=False)
    subtotal = money_column()
    total = money_column()


class Invoice(BaseModel, ClientScopedMixin, ActorStampMixin):
    """
    Fiscal document issued from exactly one approved closure.

    balance_due is always total minus confirmed payments; ``version`` guards
    concurrent balance updates.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("balance_due >= 0", name="ck_invoices_balance_non_negative"),
    )

    folio = Column(String(30), nullable=False, unique=True, index=True)
    billing_closure_id = Column(
        Uuid(as_uuid=True), ForeignKey("billing_closures.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    fiscal_folio = Column(String(50), nullable=False)
    payment_terms_id = Column(Uuid(as_uuid=True), ForeignKey("payment_terms.id", ondelete="SET NULL"), nullable=True)
    subtotal = money_column()
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_amount = money_column()
    total = money_column()
    balance_due = money_column()
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    status = enum_column(InvoiceStatus, "invoice_status", default=InvoiceStatus.DRAFT, nullable=False, index=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = enum_column(CancellationReason, "cancellation_reason", nullable=True)
    cancellation_details = Column(Text, nullable=True)
    credit_note_number = Column(String(50), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Invoice {self.folio} - {self.status} ({self.balance_due}/{self.total})>"
