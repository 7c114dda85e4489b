from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import UUID
from datetime import datetime, date
from decimal import Decimal

from settlement.models.enums import LiquidationStatus, OperatorRole


class CommissionEntryResponse(BaseModel):
    id: UUID
    service_id: UUID
    operator_id: UUID
    role: OperatorRole
    commission_amount: Decimal
    liquidation_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LiquidationCreate(BaseModel):
    operator_id: UUID
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def period_in_order(self) -> "LiquidationCreate":
        if self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self


class LiquidationAdjust(BaseModel):
    bonus: Decimal = Field(Decimal("0"), ge=0)
    deductions: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class LiquidationPay(BaseModel):
    payment_reference: Optional[str] = Field(None, max_length=100)


class LiquidationResponse(BaseModel):
    id: UUID
    folio: str
    operator_id: UUID
    period_start: date
    period_end: date
    services_count: int
    total_services_value: Decimal
    calculated_amount: Decimal
    bonus: Decimal
    deductions: Decimal
    total_amount: Decimal
    status: LiquidationStatus
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    adjustment_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
