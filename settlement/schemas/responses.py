"""Response envelopes shared by every endpoint"""

from typing import Generic, TypeVar, Any
from pydantic import BaseModel, Field


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Envelope for a successful call.

    Example:
        {
            "success": true,
            "data": {"id": "...", "folio": "FAC-000001", "status": "sent"},
            "message": "Invoice sent"
        }
    """
    success: bool = True
    data: T
    message: str = "Operation successful"


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """
    Envelope for a failed call; `code` is the stable machine-readable error.

    Example:
        {
            "success": false,
            "error": {
                "code": "AMOUNT_MISMATCH",
                "message": "Bank transaction amount 11999 does not equal payment amount 12000",
                "details": {"transaction_amount": "11999", "payment_amount": "12000"}
            }
        }
    """
    success: bool = False
    error: ErrorDetail


class PaginationMeta(BaseModel):
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, le=100, description="Items per page")
    total: int = Field(..., ge=0, description="Items matching the filters")
    total_pages: int = Field(..., ge=0, description="Number of pages at this page size")


class PaginatedResponse(BaseModel, Generic[T]):
    """Success envelope for list endpoints that page their results"""
    success: bool = True
    data: list[T]
    meta: PaginationMeta
    message: str = "Operation successful"
