"""Reconciliation Service - one-to-one links between bank lines and payments"""

import uuid
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.events import (
    TransactionMatched, TransactionUnmatched, commit_and_publish, record_event,
)
from settlement.core.exceptions import AlreadyMatched, AmountMismatch, InvalidState
from settlement.core.logging import get_logger
from settlement.models.enums import PaymentStatus, ReconciliationStatus
from settlement.models.payment import BankTransaction, Payment
from settlement.schemas.payment import BankTransactionImport, BankTransactionImportResult
from settlement.services.payment_service import PaymentService
from settlement.utils.db import get_or_raise
from settlement.utils.money import quantize, to_decimal
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)


class ReconciliationService:
    @staticmethod
    async def import_transactions(db: AsyncSession, data: BankTransactionImport) -> BankTransactionImportResult:
        """Store statement lines as unmatched transactions under one import batch id"""
        import_batch = data.import_batch or uuid.uuid4().hex
        transactions = [
            BankTransaction(
                description=row.description,
                amount=quantize(row.amount),
                transaction_date=row.transaction_date,
                reference=row.reference,
                status=ReconciliationStatus.UNMATCHED,
                import_batch=import_batch,
                notes=row.notes,
            )
            for row in data.transactions
        ]
        db.add_all(transactions)
        await db.flush()
        logger.info("Bank transactions imported", extra={"import_batch": import_batch, "count": len(transactions)})
        await commit_and_publish(db)
        return BankTransactionImportResult(
            import_batch=import_batch,
            imported=len(transactions),
            transaction_ids=[t.id for t in transactions],
        )

    @staticmethod
    async def get_transaction(db: AsyncSession, transaction_id: UUID) -> BankTransaction:
        return await get_or_raise(db, BankTransaction, transaction_id)

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        status: Optional[ReconciliationStatus] = None,
        import_batch: Optional[str] = None,
    ) -> List[BankTransaction]:
        stmt = select(BankTransaction)
        if status is not None:
            stmt = stmt.where(BankTransaction.status == status)
        if import_batch is not None:
            stmt = stmt.where(BankTransaction.import_batch == import_batch)
        result = await db.execute(
            stmt.order_by(BankTransaction.transaction_date.desc(), BankTransaction.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def match(
        db: AsyncSession,
        transaction_id: UUID,
        payment_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> Tuple[BankTransaction, Payment]:
        """
        Link a bank transaction to a payment of exactly the same amount.

        A pending payment is confirmed as part of the match. Nothing is written
        when either side is already linked or the amounts differ.
        """
        transaction = await get_or_raise(db, BankTransaction, transaction_id, for_update=True)
        payment = await get_or_raise(db, Payment, payment_id, for_update=True)

        if (
            transaction.status == ReconciliationStatus.MATCHED
            or transaction.matched_payment_id is not None
            or payment.bank_transaction_id is not None
        ):
            logger.warning(
                "Reconciliation rejected: already matched",
                extra={"transaction_id": str(transaction.id), "payment_id": str(payment.id)},
            )
            raise AlreadyMatched(
                "Transaction or payment is already reconciled",
                transaction_id=transaction.id,
                payment_id=payment.id,
                matched_payment_id=transaction.matched_payment_id,
                bank_transaction_id=payment.bank_transaction_id,
            )
        if payment.status == PaymentStatus.REJECTED:
            raise InvalidState(
                "Rejected payments cannot be reconciled",
                payment_id=payment.id,
                status=payment.status,
            )
        if to_decimal(transaction.amount) != to_decimal(payment.amount):
            logger.warning(
                "Reconciliation rejected: amount mismatch",
                extra={
                    "transaction_id": str(transaction.id),
                    "payment_id": str(payment.id),
                    "transaction_amount": str(transaction.amount),
                    "payment_amount": str(payment.amount),
                },
            )
            raise AmountMismatch(to_decimal(transaction.amount), to_decimal(payment.amount))

        if payment.status == PaymentStatus.PENDING:
            await PaymentService.confirm_payment(db, payment.id, actor_id=actor_id, auto_commit=False)

        now = get_utc_now()
        try:
            tx_claim = await db.execute(
                update(BankTransaction)
                .where(
                    BankTransaction.id == transaction.id,
                    BankTransaction.status == ReconciliationStatus.UNMATCHED,
                    BankTransaction.matched_payment_id.is_(None),
                )
                .values(
                    status=ReconciliationStatus.MATCHED,
                    matched_payment_id=payment.id,
                    matched_at=now,
                    matched_by=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            payment_claim = await db.execute(
                update(Payment)
                .where(Payment.id == payment.id, Payment.bank_transaction_id.is_(None))
                .values(bank_transaction_id=transaction.id)
                .execution_options(synchronize_session=False)
            )
            claimed = tx_claim.rowcount == 1 and payment_claim.rowcount == 1
        except IntegrityError:
            claimed = False
        if not claimed:
            await db.rollback()
            logger.warning(
                "Reconciliation lost a concurrent claim",
                extra={"transaction_id": str(transaction_id), "payment_id": str(payment_id)},
            )
            raise AlreadyMatched(
                "Transaction or payment was reconciled concurrently",
                transaction_id=transaction_id,
                payment_id=payment_id,
            )

        transaction = await get_or_raise(db, BankTransaction, transaction_id, for_update=True)
        payment = await get_or_raise(db, Payment, payment_id, for_update=True)
        record_event(db, TransactionMatched(transaction_id=transaction.id, payment_id=payment.id))
        logger.info(
            "Transaction matched",
            extra={
                "transaction_id": str(transaction.id),
                "payment_id": str(payment.id),
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        await commit_and_publish(db)
        return transaction, payment

    @staticmethod
    async def unmatch(
        db: AsyncSession,
        transaction_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> Tuple[BankTransaction, Optional[Payment]]:
        """Remove a reconciliation link; the payment keeps its confirmed status"""
        transaction = await get_or_raise(db, BankTransaction, transaction_id, for_update=True)
        if transaction.status != ReconciliationStatus.MATCHED:
            raise InvalidState(
                "Transaction is not matched",
                transaction_id=transaction.id,
                status=transaction.status,
            )

        payment_id = transaction.matched_payment_id
        payment = None
        if payment_id is not None:
            payment = await get_or_raise(db, Payment, payment_id, for_update=True)
            payment.bank_transaction_id = None

        transaction.status = ReconciliationStatus.UNMATCHED
        transaction.matched_payment_id = None
        transaction.matched_at = None
        transaction.matched_by = None
        await db.flush()

        if payment_id is not None:
            record_event(db, TransactionUnmatched(transaction_id=transaction.id, payment_id=payment_id))
        logger.info(
            "Transaction unmatched",
            extra={
                "transaction_id": str(transaction.id),
                "payment_id": str(payment_id) if payment_id else None,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        await commit_and_publish(db)
        return transaction, payment
