from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal

from settlement.models.enums import OperatorRole, ServicePriority, ServiceStatus


class ServiceOperatorAssign(BaseModel):
    operator_id: UUID
    role: OperatorRole = OperatorRole.PRIMARY
    commission_override: Optional[Decimal] = Field(None, ge=0)


class ServiceCreate(BaseModel):
    client_id: UUID
    scheduled_date: date
    priority: ServicePriority = ServicePriority.NORMAL
    crane_id: Optional[UUID] = None
    operator_id: Optional[UUID] = None
    subtotal: Decimal = Field(..., ge=0)
    total: Optional[Decimal] = Field(None, ge=0)
    quote_number: Optional[str] = Field(None, max_length=50)
    purchase_order_number: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    operators: List[ServiceOperatorAssign] = []


class ServiceResponse(BaseModel):
    id: UUID
    folio: str
    status: ServiceStatus
    priority: ServicePriority
    scheduled_date: date
    client_id: UUID
    crane_id: Optional[UUID] = None
    operator_id: Optional[UUID] = None
    subtotal: Decimal
    total: Decimal
    quote_number: Optional[str] = None
    purchase_order_number: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServiceOperatorResponse(BaseModel):
    id: UUID
    service_id: UUID
    operator_id: UUID
    role: OperatorRole
    commission_override: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class ServiceTransitionRequest(BaseModel):
    status: ServiceStatus


# Typed patches accepted by the batch engine
class ServiceStatusPatch(BaseModel):
    kind: Literal["status"] = "status"
    status: ServiceStatus


class ServiceReferencePatch(BaseModel):
    kind: Literal["reference"] = "reference"
    quote_number: Optional[str] = Field(None, min_length=1, max_length=50)
    purchase_order_number: Optional[str] = Field(None, min_length=1, max_length=50)

    @model_validator(mode="after")
    def require_a_reference(self) -> "ServiceReferencePatch":
        if self.quote_number is None and self.purchase_order_number is None:
            raise ValueError("quote_number or purchase_order_number is required")
        return self


ServicePatch = Annotated[Union[ServiceStatusPatch, ServiceReferencePatch], Field(discriminator="kind")]


class BatchItem(BaseModel):
    service_id: UUID
    patch: ServicePatch


class BatchRequest(BaseModel):
    items: List[BatchItem] = Field(..., min_length=1)
    atomic: bool = False


class ReferenceNumberingRequest(BaseModel):
    """
    Assign quote or purchase-order numbers to several services at once.

    Either every service gets ``prefix + base_number`` or numbers run from
    ``starting_number`` upwards in list order.
    """
    service_ids: List[UUID] = Field(..., min_length=1)
    field: Literal["quote_number", "purchase_order_number"]
    prefix: str = Field("", max_length=20)
    base_number: Optional[str] = Field(None, min_length=1, max_length=30)
    starting_number: Optional[int] = Field(None, ge=0)
    atomic: bool = False

    @model_validator(mode="after")
    def exactly_one_numbering_mode(self) -> "ReferenceNumberingRequest":
        if (self.base_number is None) == (self.starting_number is None):
            raise ValueError("Provide exactly one of base_number or starting_number")
        return self


class BatchProgressEvent(BaseModel):
    phase: Literal["start", "progress", "error", "complete"]
    total: int
    current: int
    item_id: Optional[UUID] = None
    message: Optional[str] = None


class BatchResult(BaseModel):
    total: int
    applied: int
    applied_ids: List[UUID] = []
    succeeded: bool
    failed_index: Optional[int] = None
    failed_item_id: Optional[UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    rolled_back: bool = False
    events: List[BatchProgressEvent] = []
