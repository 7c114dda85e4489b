from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import UUID
from datetime import datetime, date
from decimal import Decimal

from settlement.models.enums import CancellationReason, ClosureStatus, InvoiceStatus


class ClosureCreate(BaseModel):
    client_id: UUID
    period_start: date
    period_end: date
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def period_in_order(self) -> "ClosureCreate":
        if self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self


class ClosureServiceResponse(BaseModel):
    service_id: UUID
    service_folio: str
    service_date: date
    subtotal: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class ClosureResponse(BaseModel):
    id: UUID
    folio: str
    client_id: UUID
    period_start: date
    period_end: date
    services_count: int
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    status: ClosureStatus
    invoice_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClosureDetailResponse(ClosureResponse):
    services: List[ClosureServiceResponse] = []


class InvoiceCreate(BaseModel):
    billing_closure_id: UUID
    fiscal_folio: str = Field(..., min_length=1, max_length=50)
    payment_terms_id: Optional[UUID] = None
    issue_date: date
    due_date: Optional[date] = None

    @model_validator(mode="after")
    def due_after_issue(self) -> "InvoiceCreate":
        if self.due_date is not None and self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self


class InvoiceCancel(BaseModel):
    reason: CancellationReason
    credit_note_number: str = Field(..., min_length=1, max_length=50)
    details: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: UUID
    folio: str
    billing_closure_id: UUID
    client_id: UUID
    fiscal_folio: str
    payment_terms_id: Optional[UUID] = None
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    balance_due: Decimal
    issue_date: date
    due_date: date
    status: InvoiceStatus
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[CancellationReason] = None
    credit_note_number: Optional[str] = None
    version: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarkPaidRequest(BaseModel):
    invoice_ids: List[UUID] = Field(..., min_length=1)
    paid_date: Optional[date] = None


class MarkPaidOutcome(BaseModel):
    invoice_id: UUID
    succeeded: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class MarkPaidResult(BaseModel):
    succeeded: List[UUID] = []
    failed: List[MarkPaidOutcome] = []
    outcomes: List[MarkPaidOutcome] = []


class RefreshOverdueRequest(BaseModel):
    today: Optional[date] = None


class RefreshOverdueResult(BaseModel):
    updated: int
    as_of: date
