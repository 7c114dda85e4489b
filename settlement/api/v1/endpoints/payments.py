"""Payment endpoints - client payments and their confirmation"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import PaymentStatus
from settlement.schemas.payment import PaymentCreate, PaymentResponse
from settlement.schemas.responses import SuccessResponse
from settlement.services.payment_service import PaymentService

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_payments(
    client_id: Optional[UUID] = Query(None),
    invoice_id: Optional[UUID] = Query(None),
    status: Optional[PaymentStatus] = Query(None),
    unreconciled: bool = Query(False),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payments = await PaymentService.list_payments(
        db, client_id=client_id, invoice_id=invoice_id, status=status, unreconciled_only=unreconciled
    )
    return SuccessResponse(data=[PaymentResponse.model_validate(p) for p in payments])


@router.post("", response_model=SuccessResponse)
async def register_payment(
    payment_in: PaymentCreate,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Register a payment; `confirm_now` confirms it and updates the invoice right away."""
    payment = await PaymentService.register_payment(db, payment_in, actor_id=principal.actor_id)
    return SuccessResponse(
        data=PaymentResponse.model_validate(payment),
        message="Payment registered successfully",
    )


@router.get("/{payment_id}", response_model=SuccessResponse)
async def get_payment(
    payment_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.get_payment(db, payment_id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment))


@router.post("/{payment_id}/confirm", response_model=SuccessResponse)
async def confirm_payment(
    payment_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.confirm_payment(db, payment_id, actor_id=principal.actor_id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment confirmed")


@router.post("/{payment_id}/reject", response_model=SuccessResponse)
async def reject_payment(
    payment_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.reject_payment(db, payment_id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment rejected")
