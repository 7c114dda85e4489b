"""Invoice Service - issuing invoices from closures and keeping balances current"""

import asyncio
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.config import settings
from settlement.core.events import (
    ClosureInvoiced, InvoiceUpdated, commit_and_publish, record_event,
)
from settlement.core.exceptions import (
    ClosureAlreadyInvoiced, ClosureNotApproved, InvalidState, SettlementError,
)
from settlement.core.logging import get_logger
from settlement.models.billing import BillingClosure, BillingClosureService, Invoice
from settlement.models.enums import ClosureStatus, InvoiceStatus, PaymentStatus, ServiceStatus
from settlement.models.payment import Payment
from settlement.models.service import Service
from settlement.schemas.billing import InvoiceCancel, InvoiceCreate, MarkPaidOutcome, MarkPaidResult
from settlement.services.folio_service import FolioService
from settlement.services.lookup_service import LookupService
from settlement.services.service_workflow import ServiceWorkflow
from settlement.services.state_machine import CLOSURE_TRANSITIONS, INVOICE_TRANSITIONS
from settlement.utils.db import get_or_raise
from settlement.utils.money import ZERO, to_decimal
from settlement.utils.time import get_utc_now, get_utc_today

logger = get_logger(__name__)

CANCELLABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT})
OVERDUE_CANDIDATE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PARTIAL)


def derive_status(invoice: Invoice, balance_due, today: date) -> InvoiceStatus:
    """Status implied by a balance: paid at zero, overdue past due, partial when partly paid"""
    balance = to_decimal(balance_due)
    if balance == ZERO:
        return InvoiceStatus.PAID
    if invoice.status == InvoiceStatus.DRAFT:
        return InvoiceStatus.DRAFT
    if invoice.due_date < today:
        return InvoiceStatus.OVERDUE
    if balance < to_decimal(invoice.total):
        return InvoiceStatus.PARTIAL
    return invoice.status


class InvoiceService:
    @staticmethod
    async def create_invoice(
        db: AsyncSession,
        data: InvoiceCreate,
        actor_id: Optional[UUID] = None,
    ) -> Invoice:
        """
        Issue the invoice of an approved closure.

        The closure is claimed with a conditional UPDATE (approved, no invoice yet)
        so of two concurrent requests exactly one gets the closure; the other
        fails with ClosureAlreadyInvoiced.
        """
        terms = await LookupService.get_payment_terms(db, data.payment_terms_id)
        invoice_id = uuid.uuid4()

        claim = await db.execute(
            update(BillingClosure)
            .where(
                BillingClosure.id == data.billing_closure_id,
                BillingClosure.status == ClosureStatus.APPROVED,
                BillingClosure.invoice_id.is_(None),
            )
            .values(status=ClosureStatus.INVOICING, invoice_id=invoice_id, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        closure = await get_or_raise(
            db, BillingClosure, data.billing_closure_id, for_update=True, entity="BillingClosure"
        )
        if claim.rowcount != 1:
            logger.warning(
                "Closure claim rejected",
                extra={"closure_id": str(closure.id), "status": closure.status.value},
            )
            if closure.invoice_id is not None:
                raise ClosureAlreadyInvoiced(closure.id, closure.invoice_id)
            raise ClosureNotApproved(closure.id, closure.status)

        if data.due_date is not None:
            due_date = data.due_date
        else:
            days = terms.days if terms is not None else settings.DEFAULT_PAYMENT_TERMS_DAYS
            due_date = data.issue_date + timedelta(days=days)

        invoice = Invoice(
            id=invoice_id,
            folio=await FolioService.next_folio(db, settings.INVOICE_FOLIO_PREFIX),
            billing_closure_id=closure.id,
            client_id=closure.client_id,
            fiscal_folio=data.fiscal_folio,
            payment_terms_id=data.payment_terms_id,
            subtotal=closure.subtotal,
            tax_rate=closure.tax_rate,
            tax_amount=closure.tax_amount,
            total=closure.total,
            balance_due=closure.total,
            issue_date=data.issue_date,
            due_date=due_date,
            status=InvoiceStatus.DRAFT,
            created_by=actor_id,
        )
        db.add(invoice)
        await db.flush()

        record_event(db, ClosureInvoiced(closure_id=closure.id, invoice_id=invoice.id))
        record_event(db, InvoiceUpdated(
            invoice_id=invoice.id, status=invoice.status.value, balance_due=to_decimal(invoice.balance_due),
        ))
        logger.info(
            "Invoice created",
            extra={"invoice_id": str(invoice.id), "closure_id": str(closure.id), "total": str(invoice.total)},
        )
        await commit_and_publish(db)
        await db.refresh(invoice)
        return invoice

    @staticmethod
    async def get_invoice(db: AsyncSession, invoice_id: UUID) -> Invoice:
        return await get_or_raise(db, Invoice, invoice_id)

    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        client_id: Optional[UUID] = None,
        status: Optional[InvoiceStatus] = None,
    ) -> List[Invoice]:
        stmt = select(Invoice)
        if client_id is not None:
            stmt = stmt.where(Invoice.client_id == client_id)
        if status is not None:
            stmt = stmt.where(Invoice.status == status)
        result = await db.execute(stmt.order_by(Invoice.issue_date.desc(), Invoice.folio.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def _record_update(db: AsyncSession, invoice: Invoice) -> None:
        record_event(db, InvoiceUpdated(
            invoice_id=invoice.id, status=invoice.status.value, balance_due=to_decimal(invoice.balance_due),
        ))

    @staticmethod
    async def _complete_billing(db: AsyncSession, invoice: Invoice, actor_id: Optional[UUID] = None) -> None:
        """Invoice the closure and its still-completed services once the invoice leaves draft"""
        closure = await get_or_raise(
            db, BillingClosure, invoice.billing_closure_id, for_update=True, entity="BillingClosure"
        )
        if closure.status == ClosureStatus.INVOICING:
            CLOSURE_TRANSITIONS.ensure(closure.status, ClosureStatus.INVOICED)
            closure.status = ClosureStatus.INVOICED

        result = await db.execute(
            select(Service.id)
            .join(BillingClosureService, BillingClosureService.service_id == Service.id)
            .where(
                BillingClosureService.closure_id == closure.id,
                Service.status == ServiceStatus.COMPLETED,
            )
            .order_by(Service.folio)
        )
        for service_id in result.scalars().all():
            await ServiceWorkflow.transition(
                db, service_id, ServiceStatus.INVOICED, actor_id=actor_id, auto_commit=False,
            )

    @staticmethod
    async def send_invoice(
        db: AsyncSession,
        invoice_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> Invoice:
        """
        Mark the invoice sent; its closure becomes invoiced and its services invoiced.

        A draft that already received payments goes straight to partial (or
        overdue) instead of sent.
        """
        invoice = await get_or_raise(db, Invoice, invoice_id, for_update=True)
        INVOICE_TRANSITIONS.ensure(invoice.status, InvoiceStatus.SENT)
        invoice.status = InvoiceStatus.SENT
        invoice.sent_at = get_utc_now()
        target = derive_status(invoice, invoice.balance_due, get_utc_today())
        if target != invoice.status:
            INVOICE_TRANSITIONS.ensure(invoice.status, target)
            invoice.status = target

        await InvoiceService._complete_billing(db, invoice, actor_id=actor_id)

        await db.flush()
        await InvoiceService._record_update(db, invoice)
        logger.info(
            "Invoice sent",
            extra={"invoice_id": str(invoice.id), "closure_id": str(invoice.billing_closure_id)},
        )
        await commit_and_publish(db)
        await db.refresh(invoice)
        return invoice

    @staticmethod
    async def cancel_invoice(db: AsyncSession, invoice_id: UUID, data: InvoiceCancel) -> Invoice:
        invoice = await get_or_raise(db, Invoice, invoice_id, for_update=True)
        if invoice.status not in CANCELLABLE_STATUSES or to_decimal(invoice.balance_due) != to_decimal(invoice.total):
            logger.warning(
                "Invoice cancellation rejected",
                extra={"invoice_id": str(invoice.id), "status": invoice.status.value},
            )
            raise InvalidState(
                f"Invoice {invoice.folio} can only be cancelled while unpaid and draft or sent",
                invoice_id=invoice.id,
                status=invoice.status,
                balance_due=to_decimal(invoice.balance_due),
            )

        invoice.status = InvoiceStatus.CANCELLED
        invoice.cancelled_at = get_utc_now()
        invoice.cancellation_reason = data.reason
        invoice.cancellation_details = data.details
        invoice.credit_note_number = data.credit_note_number
        await db.flush()

        await InvoiceService._record_update(db, invoice)
        logger.info(
            "Invoice cancelled",
            extra={"invoice_id": str(invoice.id), "reason": data.reason.value},
        )
        await commit_and_publish(db)
        await db.refresh(invoice)
        return invoice

    @staticmethod
    async def lock_invoice(db: AsyncSession, invoice_id: UUID) -> Invoice:
        return await get_or_raise(db, Invoice, invoice_id, for_update=True)

    @staticmethod
    async def recompute_balance(db: AsyncSession, invoice: Invoice, today: Optional[date] = None) -> Invoice:
        """
        Set balance_due = total - confirmed payments and derive the status.

        The caller holds the invoice row lock; the version column turns any
        write that slipped past the lock into a StaleDataError on flush.
        """
        confirmed = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.invoice_id == invoice.id,
                Payment.status == PaymentStatus.CONFIRMED,
            )
        )
        balance = to_decimal(invoice.total) - to_decimal(confirmed)
        if balance < ZERO:
            raise InvalidState(
                f"Confirmed payments exceed the total of invoice {invoice.folio}",
                invoice_id=invoice.id,
                total=to_decimal(invoice.total),
                confirmed=to_decimal(confirmed),
            )

        target = derive_status(invoice, balance, today or get_utc_today())
        leaves_draft = invoice.status == InvoiceStatus.DRAFT and target != InvoiceStatus.DRAFT
        if target != invoice.status:
            INVOICE_TRANSITIONS.ensure(invoice.status, target)
            invoice.status = target
            if target == InvoiceStatus.PAID:
                invoice.paid_at = get_utc_now()
        invoice.balance_due = balance
        if leaves_draft:
            await InvoiceService._complete_billing(db, invoice)
        await db.flush()
        await InvoiceService._record_update(db, invoice)
        logger.info(
            "Invoice balance updated",
            extra={"invoice_id": str(invoice.id), "balance_due": str(balance), "status": invoice.status.value},
        )
        return invoice

    @staticmethod
    async def mark_paid(db: AsyncSession, invoice_id: UUID, paid_date: Optional[date] = None) -> Invoice:
        """Force-settle one invoice regardless of recorded payments"""
        invoice = await get_or_raise(db, Invoice, invoice_id, for_update=True)
        INVOICE_TRANSITIONS.ensure(invoice.status, InvoiceStatus.PAID)
        was_draft = invoice.status == InvoiceStatus.DRAFT
        invoice.status = InvoiceStatus.PAID
        invoice.balance_due = ZERO
        invoice.paid_at = datetime.combine(paid_date, time.min) if paid_date else get_utc_now()
        if was_draft:
            await InvoiceService._complete_billing(db, invoice)
        await db.flush()

        await InvoiceService._record_update(db, invoice)
        logger.info("Invoice marked paid", extra={"invoice_id": str(invoice.id)})
        await commit_and_publish(db)
        return invoice

    @staticmethod
    async def mark_invoices_paid_bulk(
        session_factory: async_sessionmaker,
        invoice_ids: Sequence[UUID],
        paid_date: Optional[date] = None,
    ) -> MarkPaidResult:
        """
        Settle many invoices, each in its own session and transaction.

        Runs concurrently up to BULK_MARK_PAID_CONCURRENCY; one failing invoice
        does not affect the others.
        """
        semaphore = asyncio.Semaphore(settings.BULK_MARK_PAID_CONCURRENCY)

        async def settle(invoice_id: UUID) -> MarkPaidOutcome:
            async with semaphore:
                async with session_factory() as session:
                    try:
                        await InvoiceService.mark_paid(session, invoice_id, paid_date)
                    except SettlementError as exc:
                        await session.rollback()
                        return MarkPaidOutcome(
                            invoice_id=invoice_id, succeeded=False, error_code=exc.code, error_message=exc.message,
                        )
                    except SQLAlchemyError:
                        await session.rollback()
                        logger.error("Bulk mark paid failed", extra={"invoice_id": str(invoice_id)}, exc_info=True)
                        return MarkPaidOutcome(
                            invoice_id=invoice_id,
                            succeeded=False,
                            error_code="DATABASE_ERROR",
                            error_message="Database error",
                        )
                    return MarkPaidOutcome(invoice_id=invoice_id, succeeded=True)

        unique_ids = list(dict.fromkeys(invoice_ids))
        outcomes = await asyncio.gather(*(settle(invoice_id) for invoice_id in unique_ids))
        logger.info(
            "Bulk mark paid finished",
            extra={"requested": len(unique_ids), "succeeded": sum(1 for o in outcomes if o.succeeded)},
        )
        return MarkPaidResult(
            succeeded=[o.invoice_id for o in outcomes if o.succeeded],
            failed=[o for o in outcomes if not o.succeeded],
            outcomes=list(outcomes),
        )

    @staticmethod
    async def refresh_overdue(db: AsyncSession, today: Optional[date] = None) -> int:
        """Flag sent or partly paid invoices past their due date as overdue"""
        today = today or get_utc_today()
        criteria = (
            Invoice.status.in_(OVERDUE_CANDIDATE_STATUSES),
            Invoice.due_date < today,
            Invoice.balance_due > 0,
        )
        result = await db.execute(
            select(Invoice)
            .where(*criteria)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invoices = list(result.scalars().all())
        if not invoices:
            return 0

        for invoice in invoices:
            INVOICE_TRANSITIONS.ensure(invoice.status, InvoiceStatus.OVERDUE)
            invoice.status = InvoiceStatus.OVERDUE
        await db.flush()
        for invoice in invoices:
            await InvoiceService._record_update(db, invoice)
        logger.info("Overdue invoices refreshed", extra={"updated": len(invoices), "as_of": today.isoformat()})
        await commit_and_publish(db)
        return len(invoices)
