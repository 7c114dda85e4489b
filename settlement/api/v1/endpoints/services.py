"""Service endpoints - field services, their status pipeline and batch edits"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from settlement.api import deps
from settlement.core.security import Principal
from settlement.models.enums import ServiceStatus
from settlement.schemas.responses import PaginatedResponse, SuccessResponse
from settlement.schemas.service import (
    BatchRequest,
    ReferenceNumberingRequest,
    ServiceCreate,
    ServiceOperatorAssign,
    ServiceOperatorResponse,
    ServiceResponse,
    ServiceTransitionRequest,
)
from settlement.services.batch_service import BatchService
from settlement.services.service_workflow import ServiceWorkflow

router = APIRouter()


@router.get("", response_model=PaginatedResponse[ServiceResponse])
async def list_services(
    status: Optional[ServiceStatus] = Query(None),
    client_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """List services, optionally filtered by status and client."""
    services, total = await ServiceWorkflow.list_services(
        db, status=status, client_id=client_id, page=page, page_size=page_size
    )
    return PaginatedResponse(
        data=[ServiceResponse.model_validate(s) for s in services],
        meta={
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": (total + page_size - 1) // page_size,
        },
    )


@router.post("", response_model=SuccessResponse)
async def create_service(
    service_in: ServiceCreate,
    principal: Principal = Depends(deps.require_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Create a service in `pending` with a freshly allocated folio."""
    service = await ServiceWorkflow.create_service(db, service_in, actor_id=principal.actor_id)
    return SuccessResponse(
        data=ServiceResponse.model_validate(service),
        message="Service created successfully",
    )


@router.post("/batch", response_model=SuccessResponse)
async def apply_batch(
    batch_in: BatchRequest,
    principal: Principal = Depends(deps.require_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Apply status or reference patches in order, stopping at the first failure.

    The result reports how many items were applied and which one failed.
    """
    result = await BatchService.apply(
        db, batch_in.items, atomic=batch_in.atomic, actor_id=principal.actor_id
    )
    return SuccessResponse(
        data=result,
        message="Batch applied" if result.succeeded else "Batch stopped at a failing item",
    )


@router.post("/batch/references", response_model=SuccessResponse)
async def assign_references(
    numbering_in: ReferenceNumberingRequest,
    principal: Principal = Depends(deps.require_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Assign quote or purchase-order numbers to several services."""
    items = BatchService.build_reference_items(numbering_in)
    result = await BatchService.apply(db, items, atomic=numbering_in.atomic, actor_id=principal.actor_id)
    return SuccessResponse(
        data=result,
        message="References assigned" if result.succeeded else "Batch stopped at a failing item",
    )


@router.get("/{service_id}", response_model=SuccessResponse)
async def get_service(
    service_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    service = await ServiceWorkflow.get_service(db, service_id)
    return SuccessResponse(data=ServiceResponse.model_validate(service))


@router.patch("/{service_id}/status", response_model=SuccessResponse)
async def change_service_status(
    service_id: UUID,
    transition_in: ServiceTransitionRequest,
    principal: Principal = Depends(deps.require_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Move a service along its pipeline. Illegal moves return 409."""
    service = await ServiceWorkflow.transition(
        db, service_id, transition_in.status, actor_id=principal.actor_id
    )
    return SuccessResponse(
        data=ServiceResponse.model_validate(service),
        message="Service status updated",
    )


@router.get("/{service_id}/operators", response_model=SuccessResponse)
async def list_service_operators(
    service_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    operators = await ServiceWorkflow.list_operators(db, service_id)
    return SuccessResponse(data=[ServiceOperatorResponse.model_validate(o) for o in operators])


@router.post("/{service_id}/operators", response_model=SuccessResponse)
async def assign_service_operator(
    service_id: UUID,
    assignment_in: ServiceOperatorAssign,
    principal: Principal = Depends(deps.require_dispatcher),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Assign an operator (optionally with a manual commission) to a service."""
    assignment = await ServiceWorkflow.assign_operator(db, service_id, assignment_in)
    return SuccessResponse(
        data=ServiceOperatorResponse.model_validate(assignment),
        message="Operator assigned",
    )
