"""Closure Service - client-period billing aggregates"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config import settings
from settlement.core.events import (
    ClosureApproved, ClosureCancelled, ClosureCreated, commit_and_publish, record_event,
)
from settlement.core.exceptions import ConcurrentModification, InvalidState, NoEligibleServices
from settlement.core.logging import get_logger
from settlement.models.billing import BillingClosure, BillingClosureService
from settlement.models.enums import ClosureStatus
from settlement.models.service import Service
from settlement.schemas.billing import ClosureCreate
from settlement.services.folio_service import FolioService
from settlement.services.lookup_service import LookupService
from settlement.services.state_machine import CLOSURE_ELIGIBLE_SERVICE_STATUSES, CLOSURE_TRANSITIONS
from settlement.utils.db import get_or_raise
from settlement.utils.money import compute_tax, money_sum, to_decimal
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)


class ClosureService:
    @staticmethod
    async def create_closure(
        db: AsyncSession,
        data: ClosureCreate,
        actor_id: Optional[UUID] = None,
    ) -> BillingClosure:
        """
        Aggregate the client's completed or invoiced, not yet closed services of the period.

        Tax is computed once on the closure subtotal and rounded to the currency
        unit; invoices copy these figures verbatim.
        """
        await LookupService.get_client(db, data.client_id)

        already_closed = select(BillingClosureService.service_id)
        result = await db.execute(
            select(Service)
            .where(
                Service.client_id == data.client_id,
                Service.status.in_(tuple(CLOSURE_ELIGIBLE_SERVICE_STATUSES)),
                Service.scheduled_date >= data.period_start,
                Service.scheduled_date <= data.period_end,
                Service.id.not_in(already_closed),
            )
            .order_by(Service.scheduled_date, Service.folio)
            .with_for_update()
        )
        services = list(result.scalars().all())
        if not services:
            raise NoEligibleServices(
                "No closable services for this client and period",
                client_id=data.client_id,
                period_start=data.period_start.isoformat(),
                period_end=data.period_end.isoformat(),
            )

        tax_rate = to_decimal(data.tax_rate if data.tax_rate is not None else settings.DEFAULT_TAX_RATE)
        subtotal = money_sum(s.subtotal for s in services)
        tax_amount = compute_tax(subtotal, tax_rate)

        closure = BillingClosure(
            folio=await FolioService.next_folio(db, settings.CLOSURE_FOLIO_PREFIX),
            client_id=data.client_id,
            period_start=data.period_start,
            period_end=data.period_end,
            services_count=len(services),
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total=subtotal + tax_amount,
            status=ClosureStatus.DRAFT,
            notes=data.notes,
            created_by=actor_id,
        )
        db.add(closure)
        await db.flush()

        for service in services:
            db.add(BillingClosureService(
                closure_id=closure.id,
                service_id=service.id,
                service_folio=service.folio,
                service_date=service.scheduled_date,
                subtotal=service.subtotal,
                total=service.total,
            ))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning("Services closed concurrently", extra={"client_id": str(data.client_id)})
            raise ConcurrentModification(
                "One or more services were added to another closure",
                client_id=data.client_id,
            )

        record_event(db, ClosureCreated(closure_id=closure.id, client_id=closure.client_id, total=closure.total))
        logger.info(
            "Closure created",
            extra={
                "closure_id": str(closure.id),
                "client_id": str(closure.client_id),
                "services_count": closure.services_count,
                "total": str(closure.total),
            },
        )
        await commit_and_publish(db)
        await db.refresh(closure)
        return closure

    @staticmethod
    async def get_closure(db: AsyncSession, closure_id: UUID) -> BillingClosure:
        return await get_or_raise(db, BillingClosure, closure_id, entity="BillingClosure")

    @staticmethod
    async def list_closures(
        db: AsyncSession,
        client_id: Optional[UUID] = None,
        status: Optional[ClosureStatus] = None,
    ) -> List[BillingClosure]:
        stmt = select(BillingClosure)
        if client_id is not None:
            stmt = stmt.where(BillingClosure.client_id == client_id)
        if status is not None:
            stmt = stmt.where(BillingClosure.status == status)
        result = await db.execute(stmt.order_by(BillingClosure.period_end.desc(), BillingClosure.folio.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_closure_services(db: AsyncSession, closure_id: UUID) -> List[BillingClosureService]:
        result = await db.execute(
            select(BillingClosureService)
            .where(BillingClosureService.closure_id == closure_id)
            .order_by(BillingClosureService.service_date, BillingClosureService.service_folio)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _lock_for_move(db: AsyncSession, closure_id: UUID, target: ClosureStatus) -> BillingClosure:
        closure = await get_or_raise(db, BillingClosure, closure_id, for_update=True, entity="BillingClosure")
        try:
            CLOSURE_TRANSITIONS.ensure(closure.status, target)
        except InvalidState:
            logger.warning(
                "Closure transition rejected",
                extra={"closure_id": str(closure.id), "from_status": closure.status.value, "to_status": target.value},
            )
            raise
        return closure

    @staticmethod
    async def approve_closure(
        db: AsyncSession,
        closure_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> BillingClosure:
        closure = await ClosureService._lock_for_move(db, closure_id, ClosureStatus.APPROVED)
        closure.status = ClosureStatus.APPROVED
        closure.approved_at = get_utc_now()
        closure.approved_by = actor_id

        record_event(db, ClosureApproved(closure_id=closure.id))
        logger.info("Closure approved", extra={"closure_id": str(closure.id), "actor_id": str(actor_id)})
        await commit_and_publish(db)
        await db.refresh(closure)
        return closure

    @staticmethod
    async def cancel_closure(db: AsyncSession, closure_id: UUID) -> BillingClosure:
        """Cancel a draft closure; its services become eligible for a new closure"""
        closure = await ClosureService._lock_for_move(db, closure_id, ClosureStatus.CANCELLED)
        closure.status = ClosureStatus.CANCELLED
        await db.execute(
            delete(BillingClosureService).where(BillingClosureService.closure_id == closure.id)
        )

        record_event(db, ClosureCancelled(closure_id=closure.id))
        logger.info("Closure cancelled", extra={"closure_id": str(closure.id)})
        await commit_and_publish(db)
        await db.refresh(closure)
        return closure
