"""Commission endpoints - per-service entries and operator liquidations"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import LiquidationStatus
from settlement.schemas.commission import (
    CommissionEntryResponse, LiquidationAdjust, LiquidationCreate, LiquidationPay, LiquidationResponse,
)
from settlement.schemas.responses import SuccessResponse
from settlement.services.commission_service import CommissionService

router = APIRouter()


@router.post("/services/{service_id}/compute", response_model=SuccessResponse)
async def compute_service_commissions(
    service_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Recompute the commission entries of a completed service. Safe to repeat."""
    entries = await CommissionService.compute_for_service(db, service_id)
    return SuccessResponse(data=[CommissionEntryResponse.model_validate(e) for e in entries])


@router.get("/entries", response_model=SuccessResponse)
async def list_commission_entries(
    operator_id: Optional[UUID] = Query(None),
    service_id: Optional[UUID] = Query(None),
    unliquidated: bool = Query(False),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    entries = await CommissionService.list_entries(
        db, operator_id=operator_id, service_id=service_id, unliquidated_only=unliquidated
    )
    return SuccessResponse(data=[CommissionEntryResponse.model_validate(e) for e in entries])


@router.get("/liquidations", response_model=SuccessResponse)
async def list_liquidations(
    operator_id: Optional[UUID] = Query(None),
    status: Optional[LiquidationStatus] = Query(None),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidations = await CommissionService.list_liquidations(db, operator_id=operator_id, status=status)
    return SuccessResponse(data=[LiquidationResponse.model_validate(l) for l in liquidations])


@router.post("/liquidations", response_model=SuccessResponse)
async def generate_liquidation(
    liquidation_in: LiquidationCreate,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Liquidate an operator's unliquidated entries for services in the period."""
    liquidation = await CommissionService.generate_liquidation(
        db,
        liquidation_in.operator_id,
        liquidation_in.period_start,
        liquidation_in.period_end,
        actor_id=principal.actor_id,
    )
    return SuccessResponse(
        data=LiquidationResponse.model_validate(liquidation),
        message="Liquidation generated",
    )


@router.get("/liquidations/{liquidation_id}", response_model=SuccessResponse)
async def get_liquidation(
    liquidation_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidation = await CommissionService.get_liquidation(db, liquidation_id)
    return SuccessResponse(data=LiquidationResponse.model_validate(liquidation))


@router.post("/liquidations/{liquidation_id}/adjust", response_model=SuccessResponse)
async def adjust_liquidation(
    liquidation_id: UUID,
    adjust_in: LiquidationAdjust,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidation = await CommissionService.adjust_liquidation(
        db, liquidation_id, adjust_in.bonus, adjust_in.deductions, adjust_in.notes
    )
    return SuccessResponse(data=LiquidationResponse.model_validate(liquidation), message="Liquidation adjusted")


@router.post("/liquidations/{liquidation_id}/approve", response_model=SuccessResponse)
async def approve_liquidation(
    liquidation_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidation = await CommissionService.approve_liquidation(db, liquidation_id, actor_id=principal.actor_id)
    return SuccessResponse(data=LiquidationResponse.model_validate(liquidation), message="Liquidation approved")


@router.post("/liquidations/{liquidation_id}/pay", response_model=SuccessResponse)
async def pay_liquidation(
    liquidation_id: UUID,
    pay_in: LiquidationPay,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidation = await CommissionService.mark_liquidation_paid(
        db, liquidation_id, payment_reference=pay_in.payment_reference
    )
    return SuccessResponse(data=LiquidationResponse.model_validate(liquidation), message="Liquidation paid")


@router.post("/liquidations/{liquidation_id}/cancel", response_model=SuccessResponse)
async def cancel_liquidation(
    liquidation_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    liquidation = await CommissionService.cancel_liquidation(db, liquidation_id)
    return SuccessResponse(data=LiquidationResponse.model_validate(liquidation), message="Liquidation cancelled")
