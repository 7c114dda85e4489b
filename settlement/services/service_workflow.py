"""Service Workflow - creation, status transitions and operator assignment of services"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config import settings
from settlement.core.events import (
    ServiceStatusChanged, ServiceUpdated, commit_and_publish, record_event,
)
from settlement.core.exceptions import InvalidState, SettlementError
from settlement.core.logging import get_logger
from settlement.models.enums import ServiceStatus
from settlement.models.service import Service, ServiceOperator
from settlement.schemas.service import ServiceCreate, ServiceOperatorAssign, ServiceReferencePatch
from settlement.services.commission_service import CommissionService
from settlement.services.folio_service import FolioService
from settlement.services.lookup_service import LookupService
from settlement.services.state_machine import COMMISSIONABLE_SERVICE_STATUSES, SERVICE_TRANSITIONS
from settlement.utils.db import get_or_raise
from settlement.utils.money import quantize
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)


class ServiceWorkflow:
    @staticmethod
    async def create_service(
        db: AsyncSession,
        data: ServiceCreate,
        actor_id: Optional[UUID] = None,
    ) -> Service:
        await LookupService.get_client(db, data.client_id)
        if data.crane_id is not None:
            await LookupService.get_crane(db, data.crane_id)
        if data.operator_id is not None:
            await LookupService.get_operator(db, data.operator_id)
        for assignment in data.operators:
            await LookupService.get_operator(db, assignment.operator_id)

        subtotal = quantize(data.subtotal)
        service = Service(
            folio=await FolioService.next_folio(db, settings.SERVICE_FOLIO_PREFIX),
            status=ServiceStatus.PENDING,
            priority=data.priority,
            scheduled_date=data.scheduled_date,
            client_id=data.client_id,
            crane_id=data.crane_id,
            operator_id=data.operator_id,
            subtotal=subtotal,
            total=quantize(data.total) if data.total is not None else subtotal,
            quote_number=data.quote_number,
            purchase_order_number=data.purchase_order_number,
            description=data.description,
            status_changed_at=get_utc_now(),
            created_by=actor_id,
        )
        db.add(service)
        await db.flush()

        for assignment in data.operators:
            db.add(ServiceOperator(
                service_id=service.id,
                operator_id=assignment.operator_id,
                role=assignment.role,
                commission_override=(
                    quantize(assignment.commission_override)
                    if assignment.commission_override is not None else None
                ),
            ))

        logger.info(
            "Service created",
            extra={"service_id": str(service.id), "folio": service.folio, "client_id": str(service.client_id)},
        )
        await commit_and_publish(db)
        await db.refresh(service)
        return service

    @staticmethod
    async def get_service(db: AsyncSession, service_id: UUID) -> Service:
        return await get_or_raise(db, Service, service_id)

    @staticmethod
    async def list_services(
        db: AsyncSession,
        status: Optional[ServiceStatus] = None,
        client_id: Optional[UUID] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Service], int]:
        """Return one page of services, newest first, and the total match count"""
        stmt = select(Service)
        if status is not None:
            stmt = stmt.where(Service.status == status)
        if client_id is not None:
            stmt = stmt.where(Service.client_id == client_id)

        total = await db.scalar(select(func.count()).select_from(stmt.subquery()))

        stmt = stmt.order_by(Service.scheduled_date.desc(), Service.folio.desc())
        stmt = stmt.offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def transition(
        db: AsyncSession,
        service_id: UUID,
        target: ServiceStatus,
        actor_id: Optional[UUID] = None,
        auto_commit: bool = True,
    ) -> Service:
        """
        Move a service to ``target`` through the transition table.

        Reaching a commissionable status recomputes the service commissions once
        the status change is committed. With ``auto_commit=False`` everything
        stays in the caller's transaction.
        """
        service = await get_or_raise(db, Service, service_id, for_update=True)
        current = service.status
        try:
            SERVICE_TRANSITIONS.ensure(current, target)
        except InvalidState:
            logger.warning(
                "Service transition rejected",
                extra={"service_id": str(service.id), "from_status": current.value, "to_status": target.value},
            )
            raise

        now = get_utc_now()
        service.status = target
        service.status_changed_at = now
        if target == ServiceStatus.COMPLETED:
            service.completed_at = now
        await db.flush()

        record_event(db, ServiceStatusChanged(
            service_id=service.id, from_status=current.value, to_status=target.value,
        ))
        logger.info(
            "Service status changed",
            extra={
                "service_id": str(service.id),
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

        if not auto_commit:
            if target in COMMISSIONABLE_SERVICE_STATUSES:
                await CommissionService.compute_for_service(db, service.id, auto_commit=False)
            return service

        await commit_and_publish(db)
        if target in COMMISSIONABLE_SERVICE_STATUSES:
            try:
                await CommissionService.compute_for_service(db, service.id)
            except (SettlementError, SQLAlchemyError):
                # The status change stands; commissions can be recomputed on demand
                await db.rollback()
                logger.error(
                    "Commission computation failed",
                    extra={"service_id": str(service_id)},
                    exc_info=True,
                )
        await db.refresh(service)
        return service

    @staticmethod
    async def apply_reference_patch(
        db: AsyncSession,
        service_id: UUID,
        patch: ServiceReferencePatch,
        auto_commit: bool = True,
    ) -> Service:
        """Set quote and/or purchase-order numbers; invoiced and cancelled services are frozen"""
        service = await get_or_raise(db, Service, service_id, for_update=True)
        if SERVICE_TRANSITIONS.is_terminal(service.status):
            raise InvalidState(
                f"Service {service.folio} can no longer be edited",
                service_id=service.id,
                status=service.status,
            )

        changed = []
        if patch.quote_number is not None:
            service.quote_number = patch.quote_number
            changed.append("quote_number")
        if patch.purchase_order_number is not None:
            service.purchase_order_number = patch.purchase_order_number
            changed.append("purchase_order_number")
        await db.flush()

        record_event(db, ServiceUpdated(service_id=service.id, fields=tuple(changed)))
        logger.info("Service references updated", extra={"service_id": str(service.id), "fields": changed})
        if auto_commit:
            await commit_and_publish(db)
        return service

    @staticmethod
    async def assign_operator(
        db: AsyncSession,
        service_id: UUID,
        data: ServiceOperatorAssign,
    ) -> ServiceOperator:
        """
        Add an operator to a service (or update the manual commission of an existing assignment).

        Completed services get their commissions recomputed right away.
        """
        service = await get_or_raise(db, Service, service_id, for_update=True)
        if SERVICE_TRANSITIONS.is_terminal(service.status):
            raise InvalidState(
                f"Operators of service {service.folio} can no longer change",
                service_id=service.id,
                status=service.status,
            )
        await LookupService.get_operator(db, data.operator_id)

        override = quantize(data.commission_override) if data.commission_override is not None else None
        result = await db.execute(
            select(ServiceOperator).where(
                ServiceOperator.service_id == service.id,
                ServiceOperator.operator_id == data.operator_id,
                ServiceOperator.role == data.role,
            )
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            assignment = ServiceOperator(
                service_id=service.id,
                operator_id=data.operator_id,
                role=data.role,
                commission_override=override,
            )
            db.add(assignment)
        else:
            assignment.commission_override = override

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise InvalidState(
                "Operator was assigned concurrently",
                service_id=service_id,
                operator_id=data.operator_id,
            )

        record_event(db, ServiceUpdated(service_id=service.id, fields=("operators",)))
        logger.info(
            "Operator assigned",
            extra={"service_id": str(service.id), "operator_id": str(data.operator_id), "role": data.role.value},
        )
        await commit_and_publish(db)
        if service.status in COMMISSIONABLE_SERVICE_STATUSES:
            await CommissionService.compute_for_service(db, service.id)
        await db.refresh(assignment)
        return assignment

    @staticmethod
    async def list_operators(db: AsyncSession, service_id: UUID) -> List[ServiceOperator]:
        await get_or_raise(db, Service, service_id)
        result = await db.execute(
            select(ServiceOperator)
            .where(ServiceOperator.service_id == service_id)
            .order_by(ServiceOperator.created_at)
        )
        return list(result.scalars().all())
