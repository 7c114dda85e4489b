"""Invoice endpoints - issuing, sending, cancelling and settling invoices"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import InvoiceStatus
from settlement.schemas.billing import (
    InvoiceCancel, InvoiceCreate, InvoiceResponse, MarkPaidRequest,
    RefreshOverdueRequest, RefreshOverdueResult,
)
from settlement.schemas.responses import SuccessResponse
from settlement.services.invoice_service import InvoiceService
from settlement.utils.time import get_utc_today

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_invoices(
    client_id: Optional[UUID] = Query(None),
    status: Optional[InvoiceStatus] = Query(None),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    invoices = await InvoiceService.list_invoices(db, client_id=client_id, status=status)
    return SuccessResponse(data=[InvoiceResponse.model_validate(i) for i in invoices])


@router.post("", response_model=SuccessResponse)
async def create_invoice(
    invoice_in: InvoiceCreate,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Issue the invoice of an approved closure. A closure is invoiced at most once."""
    invoice = await InvoiceService.create_invoice(db, invoice_in, actor_id=principal.actor_id)
    return SuccessResponse(
        data=InvoiceResponse.model_validate(invoice),
        message="Invoice created successfully",
    )


@router.post("/mark-paid", response_model=SuccessResponse)
async def mark_invoices_paid(
    mark_in: MarkPaidRequest,
    principal: Principal = Depends(deps.require_finance),
    session_factory: async_sessionmaker = Depends(deps.get_session_factory),
) -> Any:
    """Settle several invoices; each one succeeds or fails on its own."""
    result = await InvoiceService.mark_invoices_paid_bulk(
        session_factory, mark_in.invoice_ids, paid_date=mark_in.paid_date
    )
    return SuccessResponse(
        data=result,
        message=f"{len(result.succeeded)} of {len(result.outcomes)} invoices marked paid",
    )


@router.post("/refresh-overdue", response_model=SuccessResponse)
async def refresh_overdue(
    refresh_in: RefreshOverdueRequest,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    as_of = refresh_in.today or get_utc_today()
    updated = await InvoiceService.refresh_overdue(db, today=as_of)
    return SuccessResponse(data=RefreshOverdueResult(updated=updated, as_of=as_of))


@router.get("/{invoice_id}", response_model=SuccessResponse)
async def get_invoice(
    invoice_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    invoice = await InvoiceService.get_invoice(db, invoice_id)
    return SuccessResponse(data=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/send", response_model=SuccessResponse)
async def send_invoice(
    invoice_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    invoice = await InvoiceService.send_invoice(db, invoice_id, actor_id=principal.actor_id)
    return SuccessResponse(data=InvoiceResponse.model_validate(invoice), message="Invoice sent")


@router.post("/{invoice_id}/cancel", response_model=SuccessResponse)
async def cancel_invoice(
    invoice_id: UUID,
    cancel_in: InvoiceCancel,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Cancel an unpaid draft or sent invoice against a credit note."""
    invoice = await InvoiceService.cancel_invoice(db, invoice_id, cancel_in)
    return SuccessResponse(data=InvoiceResponse.model_validate(invoice), message="Invoice cancelled")
