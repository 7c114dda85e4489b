"""Commission Service - per-service commission entries and operator liquidations"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config import settings
from settlement.core.events import (
    CommissionsComputed, LiquidationUpdated, commit_and_publish, record_event,
)
from settlement.core.exceptions import (
    ConcurrentModification, InvalidState, NoEntriesInPeriod,
)
from settlement.core.logging import get_logger
from settlement.models.commission import CommissionEntry, CommissionLiquidation
from settlement.models.enums import LiquidationStatus, OperatorRole
from settlement.models.service import Service, ServiceOperator
from settlement.services.commission_schemes import CommissionScheme
from settlement.services.folio_service import FolioService
from settlement.services.lookup_service import LookupService
from settlement.services.state_machine import COMMISSIONABLE_SERVICE_STATUSES, LIQUIDATION_TRANSITIONS
from settlement.utils.db import get_or_raise
from settlement.utils.money import ZERO, money_sum, quantize, to_decimal
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)

ParticipantKey = Tuple[UUID, OperatorRole]


class CommissionService:
    @staticmethod
    async def _participants(db: AsyncSession, service: Service) -> Dict[ParticipantKey, Optional[Decimal]]:
        """(operator, role) -> manual override for everyone who worked the service"""
        result = await db.execute(
            select(ServiceOperator)
            .where(ServiceOperator.service_id == service.id)
            .order_by(ServiceOperator.created_at)
        )
        participants: Dict[ParticipantKey, Optional[Decimal]] = {}
        for row in result.scalars().all():
            participants[(row.operator_id, row.role)] = row.commission_override

        listed_operators = {operator_id for operator_id, _ in participants}
        if service.operator_id is not None and service.operator_id not in listed_operators:
            participants[(service.operator_id, OperatorRole.PRIMARY)] = None
        return participants

    @staticmethod
    async def compute_for_service(
        db: AsyncSession,
        service_id: UUID,
        auto_commit: bool = True,
    ) -> List[CommissionEntry]:
        """
        Recompute the commission entries of one service.

        Idempotent: running it twice leaves the same rows and amounts. Entries
        already attached to a liquidation are never modified or removed.
        """
        service = await get_or_raise(db, Service, service_id, for_update=True)
        if service.status not in COMMISSIONABLE_SERVICE_STATUSES:
            raise InvalidState(
                f"Service {service.folio} is not completed",
                service_id=service.id,
                status=service.status,
            )

        participants = await CommissionService._participants(db, service)
        schemes: Dict[UUID, CommissionScheme] = {}
        for operator_id, _ in participants:
            if operator_id not in schemes:
                operator = await LookupService.get_operator(db, operator_id)
                schemes[operator_id] = CommissionScheme.from_operator(operator)

        result = await db.execute(
            select(CommissionEntry).where(CommissionEntry.service_id == service.id)
        )
        existing = {(e.operator_id, e.role): e for e in result.scalars().all()}

        entries: List[CommissionEntry] = []
        for key, override in participants.items():
            operator_id, role = key
            if override is not None:
                amount = quantize(override)
            else:
                amount = schemes[operator_id].compute(service.total)

            entry = existing.get(key)
            if entry is None:
                entry = CommissionEntry(
                    service_id=service.id,
                    operator_id=operator_id,
                    role=role,
                    commission_amount=amount,
                )
                db.add(entry)
            elif entry.liquidation_id is None and to_decimal(entry.commission_amount) != amount:
                entry.commission_amount = amount
            entries.append(entry)

        # Participants removed since the last run
        for key, entry in existing.items():
            if key not in participants and entry.liquidation_id is None:
                await db.delete(entry)

        await db.flush()
        record_event(db, CommissionsComputed(service_id=service.id, entry_count=len(entries)))
        logger.info(
            "Commissions computed",
            extra={"service_id": str(service.id), "entry_count": len(entries)},
        )
        if auto_commit:
            await commit_and_publish(db)
        return entries

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        operator_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        unliquidated_only: bool = False,
    ) -> List[CommissionEntry]:
        stmt = select(CommissionEntry)
        if operator_id is not None:
            stmt = stmt.where(CommissionEntry.operator_id == operator_id)
        if service_id is not None:
            stmt = stmt.where(CommissionEntry.service_id == service_id)
        if unliquidated_only:
            stmt = stmt.where(CommissionEntry.liquidation_id.is_(None))
        result = await db.execute(stmt.order_by(CommissionEntry.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def generate_liquidation(
        db: AsyncSession,
        operator_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: Optional[UUID] = None,
    ) -> CommissionLiquidation:
        if period_start > period_end:
            raise InvalidState(
                "period_start must not be after period_end",
                period_start=period_start.isoformat(),
                period_end=period_end.isoformat(),
            )
        await LookupService.get_operator(db, operator_id)

        result = await db.execute(
            select(CommissionEntry, Service.total)
            .join(Service, Service.id == CommissionEntry.service_id)
            .where(
                CommissionEntry.operator_id == operator_id,
                CommissionEntry.liquidation_id.is_(None),
                Service.scheduled_date >= period_start,
                Service.scheduled_date <= period_end,
            )
            .order_by(Service.scheduled_date)
        )
        rows = result.all()
        if not rows:
            raise NoEntriesInPeriod(
                "No unliquidated commission entries in period",
                operator_id=operator_id,
                period_start=period_start.isoformat(),
                period_end=period_end.isoformat(),
            )

        service_totals: Dict[UUID, Decimal] = {}
        for entry, service_total in rows:
            service_totals[entry.service_id] = to_decimal(service_total)
        entries = [entry for entry, _ in rows]
        calculated = money_sum(e.commission_amount for e in entries)

        liquidation = CommissionLiquidation(
            folio=await FolioService.next_folio(db, settings.LIQUIDATION_FOLIO_PREFIX),
            operator_id=operator_id,
            period_start=period_start,
            period_end=period_end,
            services_count=len(service_totals),
            total_services_value=money_sum(service_totals.values()),
            calculated_amount=calculated,
            bonus=ZERO,
            deductions=ZERO,
            total_amount=calculated,
            status=LiquidationStatus.PENDING,
            created_by=actor_id,
        )
        db.add(liquidation)
        await db.flush()

        # Claim only entries nobody else attached meanwhile
        entry_ids = [e.id for e in entries]
        claimed = await db.execute(
            update(CommissionEntry)
            .where(CommissionEntry.id.in_(entry_ids), CommissionEntry.liquidation_id.is_(None))
            .values(liquidation_id=liquidation.id)
        )
        if claimed.rowcount != len(entry_ids):
            await db.rollback()
            logger.warning(
                "Liquidation entries claimed concurrently",
                extra={"operator_id": str(operator_id), "expected": len(entry_ids), "claimed": claimed.rowcount},
            )
            raise ConcurrentModification(
                "Commission entries were liquidated by another request",
                operator_id=operator_id,
            )

        record_event(db, LiquidationUpdated(liquidation_id=liquidation.id, status=liquidation.status.value))
        logger.info(
            "Liquidation generated",
            extra={
                "liquidation_id": str(liquidation.id),
                "operator_id": str(operator_id),
                "entries": len(entry_ids),
                "total_amount": str(calculated),
            },
        )
        await commit_and_publish(db)
        await db.refresh(liquidation)
        return liquidation

    @staticmethod
    async def get_liquidation(db: AsyncSession, liquidation_id: UUID) -> CommissionLiquidation:
        return await get_or_raise(db, CommissionLiquidation, liquidation_id)

    @staticmethod
    async def list_liquidations(
        db: AsyncSession,
        operator_id: Optional[UUID] = None,
        status: Optional[LiquidationStatus] = None,
    ) -> List[CommissionLiquidation]:
        stmt = select(CommissionLiquidation)
        if operator_id is not None:
            stmt = stmt.where(CommissionLiquidation.operator_id == operator_id)
        if status is not None:
            stmt = stmt.where(CommissionLiquidation.status == status)
        result = await db.execute(stmt.order_by(CommissionLiquidation.period_start.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def count_liquidation_entries(db: AsyncSession, liquidation_id: UUID) -> int:
        count = await db.scalar(
            select(func.count()).select_from(CommissionEntry).where(
                CommissionEntry.liquidation_id == liquidation_id
            )
        )
        return count or 0

    @staticmethod
    async def adjust_liquidation(
        db: AsyncSession,
        liquidation_id: UUID,
        bonus: Decimal,
        deductions: Decimal,
        notes: Optional[str] = None,
    ) -> CommissionLiquidation:
        liquidation = await get_or_raise(db, CommissionLiquidation, liquidation_id, for_update=True)
        if liquidation.status != LiquidationStatus.PENDING:
            raise InvalidState(
                f"Liquidation {liquidation.folio} can only be adjusted while pending",
                liquidation_id=liquidation.id,
                status=liquidation.status,
            )
        bonus = quantize(bonus)
        deductions = quantize(deductions)
        total = to_decimal(liquidation.calculated_amount) + bonus - deductions
        if total < ZERO:
            raise InvalidState(
                "Deductions exceed the liquidation amount",
                liquidation_id=liquidation.id,
                total_amount=total,
            )

        liquidation.bonus = bonus
        liquidation.deductions = deductions
        liquidation.total_amount = total
        liquidation.adjustment_notes = notes
        record_event(db, LiquidationUpdated(liquidation_id=liquidation.id, status=liquidation.status.value))
        logger.info(
            "Liquidation adjusted",
            extra={"liquidation_id": str(liquidation.id), "total_amount": str(total)},
        )
        await commit_and_publish(db)
        await db.refresh(liquidation)
        return liquidation

    @staticmethod
    async def _move(
        db: AsyncSession,
        liquidation_id: UUID,
        target: LiquidationStatus,
    ) -> CommissionLiquidation:
        liquidation = await get_or_raise(db, CommissionLiquidation, liquidation_id, for_update=True)
        try:
            LIQUIDATION_TRANSITIONS.ensure(liquidation.status, target)
        except InvalidState:
            logger.warning(
                "Liquidation transition rejected",
                extra={
                    "liquidation_id": str(liquidation.id),
                    "from_status": liquidation.status.value,
                    "to_status": target.value,
                },
            )
            raise
        liquidation.status = target
        return liquidation

    @staticmethod
    async def _finish(db: AsyncSession, liquidation: CommissionLiquidation, message: str) -> CommissionLiquidation:
        record_event(db, LiquidationUpdated(liquidation_id=liquidation.id, status=liquidation.status.value))
        logger.info(message, extra={"liquidation_id": str(liquidation.id), "status": liquidation.status.value})
        await commit_and_publish(db)
        await db.refresh(liquidation)
        return liquidation

    @staticmethod
    async def approve_liquidation(
        db: AsyncSession,
        liquidation_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> CommissionLiquidation:
        liquidation = await CommissionService._move(db, liquidation_id, LiquidationStatus.APPROVED)
        liquidation.approved_at = get_utc_now()
        liquidation.approved_by = actor_id
        return await CommissionService._finish(db, liquidation, "Liquidation approved")

    @staticmethod
    async def mark_liquidation_paid(
        db: AsyncSession,
        liquidation_id: UUID,
        payment_reference: Optional[str] = None,
    ) -> CommissionLiquidation:
        liquidation = await CommissionService._move(db, liquidation_id, LiquidationStatus.PAID)
        liquidation.paid_at = get_utc_now()
        liquidation.payment_reference = payment_reference
        return await CommissionService._finish(db, liquidation, "Liquidation paid")

    @staticmethod
    async def cancel_liquidation(db: AsyncSession, liquidation_id: UUID) -> CommissionLiquidation:
        """Cancel a pending liquidation and release its entries for a later one"""
        liquidation = await CommissionService._move(db, liquidation_id, LiquidationStatus.CANCELLED)
        await db.execute(
            update(CommissionEntry)
            .where(CommissionEntry.liquidation_id == liquidation.id)
            .values(liquidation_id=None)
        )
        return await CommissionService._finish(db, liquidation, "Liquidation cancelled")
