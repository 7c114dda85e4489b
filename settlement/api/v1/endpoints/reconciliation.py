"""Reconciliation endpoints - bank statement lines and their payment links"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import ReconciliationStatus
from settlement.schemas.payment import (
    BankTransactionImport, BankTransactionResponse, MatchRequest, MatchResponse, PaymentResponse,
)
from settlement.schemas.responses import SuccessResponse
from settlement.services.reconciliation_service import ReconciliationService

router = APIRouter()


@router.post("/transactions/import", response_model=SuccessResponse)
async def import_transactions(
    import_in: BankTransactionImport,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await ReconciliationService.import_transactions(db, import_in)
    return SuccessResponse(data=result, message=f"{result.imported} transactions imported")


@router.get("/transactions", response_model=SuccessResponse)
async def list_transactions(
    status: Optional[ReconciliationStatus] = Query(None),
    import_batch: Optional[str] = Query(None),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    transactions = await ReconciliationService.list_transactions(db, status=status, import_batch=import_batch)
    return SuccessResponse(data=[BankTransactionResponse.model_validate(t) for t in transactions])


@router.get("/transactions/{transaction_id}", response_model=SuccessResponse)
async def get_transaction(
    transaction_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    transaction = await ReconciliationService.get_transaction(db, transaction_id)
    return SuccessResponse(data=BankTransactionResponse.model_validate(transaction))


@router.post("/match", response_model=SuccessResponse)
async def match_transaction(
    match_in: MatchRequest,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Link a bank transaction to a payment of the same amount (confirming it if pending)."""
    transaction, payment = await ReconciliationService.match(
        db, match_in.transaction_id, match_in.payment_id, actor_id=principal.actor_id
    )
    return SuccessResponse(
        data=MatchResponse(
            transaction=BankTransactionResponse.model_validate(transaction),
            payment=PaymentResponse.model_validate(payment),
        ),
        message="Transaction matched",
    )


@router.post("/transactions/{transaction_id}/unmatch", response_model=SuccessResponse)
async def unmatch_transaction(
    transaction_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    transaction, _ = await ReconciliationService.unmatch(db, transaction_id, actor_id=principal.actor_id)
    return SuccessResponse(
        data=BankTransactionResponse.model_validate(transaction),
        message="Transaction unmatched",
    )
