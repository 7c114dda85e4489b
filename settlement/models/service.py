"""Field operations: services and the operators assigned to them"""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from settlement.models.base import ActorStampMixin, BaseModel, ClientScopedMixin, enum_column, money_column
from settlement.models.enums import OperatorRole, ServicePriority, ServiceStatus


class Service(BaseModel, ClientScopedMixin, ActorStampMixin):
    """
    A unit of billable work (tow, crane lift, transfer).
    Status changes go through the service state machine only.
    """
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_services_total_non_negative"),
        CheckConstraint("subtotal >= 0", name="ck_services_subtotal_non_negative"),
    )

    folio = Column(String(30), nullable=False, unique=True, index=True)
    status = enum_column(ServiceStatus, "service_status", default=ServiceStatus.PENDING, nullable=False, index=True)
    priority = enum_column(ServicePriority, "service_priority", default=ServicePriority.NORMAL, nullable=False)
    scheduled_date = Column(Date, nullable=False, index=True)
    crane_id = Column(Uuid(as_uuid=True), ForeignKey("cranes.id", ondelete="SET NULL"), nullable=True)
    operator_id = Column(Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="SET NULL"), nullable=True, index=True)
    subtotal = money_column(default=0)
    total = money_column(default=0)
    quote_number = Column(String(50), nullable=True)
    purchase_order_number = Column(String(50), nullable=True)
    description = Column(String(500), nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Service {self.folio} - {self.status}>"


class ServiceOperator(BaseModel):
    """Operator participating in a service, optionally with a manual commission"""
    __tablename__ = "service_operators"
    __table_args__ = (
        UniqueConstraint("service_id", "operator_id", "role", name="uq_service_operators_service_operator_role"),
    )

    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    operator_id = Column(Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True)
    role = enum_column(OperatorRole, "operator_role", default=OperatorRole.PRIMARY, nullable=False)
    commission_override = money_column(nullable=True)
