"""Payment Service - registering, confirming and rejecting client payments"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.events import (
    PaymentConfirmed, PaymentRegistered, PaymentRejected, commit_and_publish, record_event,
)
from settlement.core.exceptions import InvalidState, InvalidTransition
from settlement.core.logging import get_logger
from settlement.models.enums import InvoiceStatus, PaymentStatus
from settlement.models.payment import Payment
from settlement.schemas.payment import PaymentCreate
from settlement.services.invoice_service import InvoiceService
from settlement.services.lookup_service import LookupService
from settlement.utils.db import get_or_raise
from settlement.utils.money import quantize, to_decimal
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)

CLOSED_INVOICE_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


class PaymentService:
    @staticmethod
    async def register_payment(
        db: AsyncSession,
        data: PaymentCreate,
        actor_id: Optional[UUID] = None,
    ) -> Payment:
        await LookupService.get_client(db, data.client_id)
        if data.invoice_id is not None:
            invoice = await InvoiceService.get_invoice(db, data.invoice_id)
            if invoice.client_id != data.client_id:
                raise InvalidState(
                    "Payment client does not match the invoice client",
                    invoice_id=invoice.id,
                    client_id=data.client_id,
                )
            if invoice.status in CLOSED_INVOICE_STATUSES:
                raise InvalidState(
                    f"Invoice {invoice.folio} does not accept payments",
                    invoice_id=invoice.id,
                    status=invoice.status,
                )

        payment = Payment(
            client_id=data.client_id,
            invoice_id=data.invoice_id,
            amount=quantize(data.amount),
            payment_date=data.payment_date,
            payment_method=data.payment_method,
            reference_number=data.reference_number,
            status=PaymentStatus.PENDING,
            notes=data.notes,
            created_by=actor_id,
        )
        db.add(payment)
        await db.flush()
        record_event(db, PaymentRegistered(
            payment_id=payment.id, invoice_id=payment.invoice_id, amount=to_decimal(payment.amount),
        ))
        logger.info(
            "Payment registered",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id) if payment.invoice_id else None,
                "amount": str(payment.amount),
            },
        )

        if data.confirm_now:
            await PaymentService.confirm_payment(db, payment.id, actor_id=actor_id, auto_commit=False)

        await commit_and_publish(db)
        await db.refresh(payment)
        return payment

    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: UUID) -> Payment:
        return await get_or_raise(db, Payment, payment_id)

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        client_id: Optional[UUID] = None,
        invoice_id: Optional[UUID] = None,
        status: Optional[PaymentStatus] = None,
        unreconciled_only: bool = False,
    ) -> List[Payment]:
        stmt = select(Payment)
        if client_id is not None:
            stmt = stmt.where(Payment.client_id == client_id)
        if invoice_id is not None:
            stmt = stmt.where(Payment.invoice_id == invoice_id)
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        if unreconciled_only:
            stmt = stmt.where(Payment.bank_transaction_id.is_(None))
        result = await db.execute(stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def confirm_payment(
        db: AsyncSession,
        payment_id: UUID,
        actor_id: Optional[UUID] = None,
        auto_commit: bool = True,
    ) -> Payment:
        """
        Confirm a pending payment and settle it against its invoice.

        The invoice row is locked before the payment is claimed, so concurrent
        confirmations on the same invoice apply one after the other. A payment
        larger than the remaining balance is refused.
        """
        payment = await get_or_raise(db, Payment, payment_id, for_update=True)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidTransition("Payment", payment.status, PaymentStatus.CONFIRMED)

        invoice = None
        if payment.invoice_id is not None:
            invoice = await InvoiceService.lock_invoice(db, payment.invoice_id)
            if invoice.status == InvoiceStatus.CANCELLED:
                raise InvalidState(
                    f"Invoice {invoice.folio} is cancelled",
                    invoice_id=invoice.id,
                    payment_id=payment.id,
                )
            if to_decimal(payment.amount) > to_decimal(invoice.balance_due):
                logger.warning(
                    "Overpayment rejected",
                    extra={
                        "payment_id": str(payment.id),
                        "invoice_id": str(invoice.id),
                        "amount": str(payment.amount),
                        "balance_due": str(invoice.balance_due),
                    },
                )
                raise InvalidState(
                    "Payment amount exceeds the invoice balance",
                    payment_id=payment.id,
                    invoice_id=invoice.id,
                    amount=to_decimal(payment.amount),
                    balance_due=to_decimal(invoice.balance_due),
                )

        claim = await db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.CONFIRMED, confirmed_at=get_utc_now(), confirmed_by=actor_id)
            .execution_options(synchronize_session=False)
        )
        payment = await get_or_raise(db, Payment, payment.id, for_update=True)
        if claim.rowcount != 1:
            raise InvalidTransition("Payment", payment.status, PaymentStatus.CONFIRMED)

        if invoice is not None:
            await InvoiceService.recompute_balance(db, invoice)

        record_event(db, PaymentConfirmed(
            payment_id=payment.id, invoice_id=payment.invoice_id, amount=to_decimal(payment.amount),
        ))
        logger.info(
            "Payment confirmed",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id) if payment.invoice_id else None,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        if auto_commit:
            await commit_and_publish(db)
        return payment

    @staticmethod
    async def reject_payment(db: AsyncSession, payment_id: UUID) -> Payment:
        claim = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.REJECTED, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        payment = await get_or_raise(db, Payment, payment_id, for_update=True)
        if claim.rowcount != 1:
            raise InvalidTransition("Payment", payment.status, PaymentStatus.REJECTED)

        record_event(db, PaymentRejected(payment_id=payment.id))
        logger.info("Payment rejected", extra={"payment_id": str(payment.id)})
        await commit_and_publish(db)
        return payment
