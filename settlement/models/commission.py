"""Operator commissions: per-service entries and periodic liquidations"""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid

from settlement.models.base import ActorStampMixin, BaseModel, enum_column, money_column
from settlement.models.enums import LiquidationStatus, OperatorRole


class CommissionEntry(BaseModel):
    __tablename__ = "commission_entries"
    __table_args__ = (
        UniqueConstraint("service_id", "operator_id", "role", name="uq_commission_entries_service_operator_role"),
    )

    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    operator_id = Column(Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True)
    role = enum_column(OperatorRole, "operator_role", nullable=False)
    commission_amount = money_column()
    # Entries attached to a liquidation are frozen
    liquidation_id = Column(
        Uuid(as_uuid=True), ForeignKey("commission_liquidations.id", ondelete="SET NULL"), nullable=True, index=True
    )


class CommissionLiquidation(BaseModel, ActorStampMixin):
    """Periodic aggregate of one operator's commission entries"""
    __tablename__ = "commission_liquidations"

    folio = Column(String(30), nullable=False, unique=True, index=True)
    operator_id = Column(Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    services_count = Column(Integer, nullable=False, default=0)
    total_services_value = money_column(default=0)
    calculated_amount = money_column(default=0)
    bonus = money_column(default=0)
    deductions = money_column(default=0)
    total_amount = money_column(default=0)
    status = enum_column(
        LiquidationStatus, "liquidation_status", default=LiquidationStatus.PENDING, nullable=False, index=True
    )
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Uuid(as_uuid=True), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(100), nullable=True)
    adjustment_notes = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CommissionLiquidation {self.folio} - {self.status}>"
