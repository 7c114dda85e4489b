from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime, date
from decimal import Decimal

from settlement.models.enums import PaymentMethod, PaymentStatus, ReconciliationStatus


class PaymentCreate(BaseModel):
    client_id: UUID
    invoice_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    confirm_now: bool = False


class PaymentResponse(BaseModel):
    id: UUID
    client_id: UUID
    invoice_id: Optional[UUID] = None
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    status: PaymentStatus
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[UUID] = None
    bank_transaction_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BankTransactionRow(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    transaction_date: date
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class BankTransactionImport(BaseModel):
    transactions: List[BankTransactionRow] = Field(..., min_length=1)
    import_batch: Optional[str] = Field(None, max_length=64)


class BankTransactionImportResult(BaseModel):
    import_batch: str
    imported: int
    transaction_ids: List[UUID] = []


class BankTransactionResponse(BaseModel):
    id: UUID
    description: str
    amount: Decimal
    transaction_date: date
    reference: Optional[str] = None
    status: ReconciliationStatus
    matched_payment_id: Optional[UUID] = None
    matched_at: Optional[datetime] = None
    matched_by: Optional[UUID] = None
    import_batch: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MatchRequest(BaseModel):
    transaction_id: UUID
    payment_id: UUID


class MatchResponse(BaseModel):
    transaction: BankTransactionResponse
    payment: PaymentResponse
