"""Closure endpoints - billing closures per client and period"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import ClosureStatus
from settlement.schemas.billing import (
    ClosureCreate, ClosureDetailResponse, ClosureResponse, ClosureServiceResponse,
)
from settlement.schemas.responses import SuccessResponse
from settlement.services.closure_service import ClosureService

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_closures(
    client_id: Optional[UUID] = Query(None),
    status: Optional[ClosureStatus] = Query(None),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    closures = await ClosureService.list_closures(db, client_id=client_id, status=status)
    return SuccessResponse(data=[ClosureResponse.model_validate(c) for c in closures])


@router.post("", response_model=SuccessResponse)
async def create_closure(
    closure_in: ClosureCreate,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Close the client's completed services of a period. Tax defaults to the configured rate."""
    closure = await ClosureService.create_closure(db, closure_in, actor_id=principal.actor_id)
    return SuccessResponse(
        data=ClosureResponse.model_validate(closure),
        message="Closure created successfully",
    )


@router.get("/{closure_id}", response_model=SuccessResponse)
async def get_closure(
    closure_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Closure with its member service snapshots."""
    closure = await ClosureService.get_closure(db, closure_id)
    members = await ClosureService.list_closure_services(db, closure_id)
    detail = ClosureDetailResponse.model_validate(closure)
    detail.services = [ClosureServiceResponse.model_validate(m) for m in members]
    return SuccessResponse(data=detail)


@router.post("/{closure_id}/approve", response_model=SuccessResponse)
async def approve_closure(
    closure_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    closure = await ClosureService.approve_closure(db, closure_id, actor_id=principal.actor_id)
    return SuccessResponse(data=ClosureResponse.model_validate(closure), message="Closure approved")


@router.post("/{closure_id}/cancel", response_model=SuccessResponse)
async def cancel_closure(
    closure_id: UUID,
    principal: Principal = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    closure = await ClosureService.cancel_closure(db, closure_id)
    return SuccessResponse(data=ClosureResponse.model_validate(closure), message="Closure cancelled")
