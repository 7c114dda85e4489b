"""Payments received from clients and the bank lines they reconcile against"""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, Text, Uuid

from settlement.models.base import ActorStampMixin, BaseModel, ClientScopedMixin, enum_column, money_column
from settlement.models.enums import PaymentMethod, PaymentStatus, ReconciliationStatus


class Payment(BaseModel, ClientScopedMixin, ActorStampMixin):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=True, index=True)
    amount = money_column()
    payment_date = Column(Date, nullable=False)
    payment_method = enum_column(PaymentMethod, "payment_method", nullable=False)
    reference_number = Column(String(100), nullable=True)
    status = enum_column(PaymentStatus, "payment_status", default=PaymentStatus.PENDING, nullable=False, index=True)
    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(Uuid(as_uuid=True), nullable=True)
    # Reciprocal of BankTransaction.matched_payment_id
    bank_transaction_id = Column(Uuid(as_uuid=True), nullable=True, unique=True)
    notes = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Payment {self.amount} - {self.status}>"


class BankTransaction(BaseModel):
    """Externally sourced bank statement line"""
    __tablename__ = "bank_transactions"

    description = Column(String(500), nullable=False)
    amount = money_column()
    transaction_date = Column(Date, nullable=False, index=True)
    reference = Column(String(100), nullable=True)
    status = enum_column(
        ReconciliationStatus, "reconciliation_status",
        default=ReconciliationStatus.UNMATCHED, nullable=False, index=True,
    )
    matched_payment_id = Column(
        Uuid(as_uuid=True), ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, unique=True
    )
    matched_at = Column(DateTime, nullable=True)
    matched_by = Column(Uuid(as_uuid=True), nullable=True)
    import_batch = Column(String(64), nullable=True, index=True)
    notes = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BankTransaction {self.amount} - {self.status}>"
