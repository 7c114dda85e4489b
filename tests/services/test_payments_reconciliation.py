"""Service tests for payments and bank reconciliation."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement.core.events import TransactionMatched, event_bus
from settlement.core.exceptions import (
    AlreadyMatched, AmountMismatch, InvalidState, InvalidTransition,
)
from settlement.models.enums import InvoiceStatus, PaymentMethod, PaymentStatus, ReconciliationStatus
from settlement.schemas.payment import BankTransactionImport, BankTransactionRow, PaymentCreate
from settlement.services.invoice_service import InvoiceService
from settlement.services.payment_service import PaymentService
from settlement.services.reconciliation_service import ReconciliationService


def payment_request(client_id, amount: str, invoice_id=None, **kwargs) -> PaymentCreate:
    return PaymentCreate(
        client_id=client_id,
        invoice_id=invoice_id,
        amount=Decimal(amount),
        payment_date=date(2025, 4, 10),
        payment_method=PaymentMethod.TRANSFER,
        **kwargs,
    )


async def import_lines(db, *amounts: str, batch=None):
    result = await ReconciliationService.import_transactions(db, BankTransactionImport(
        transactions=[
            BankTransactionRow(description=f"Deposit {a}", amount=Decimal(a), transaction_date=date(2025, 4, 11))
            for a in amounts
        ],
        import_batch=batch,
    ))
    return result


@pytest.mark.asyncio
async def test_register_payment_starts_pending(db_session, client_record):
    payment = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == Decimal("5000")
    assert payment.confirmed_at is None


@pytest.mark.asyncio
async def test_payment_client_must_match_invoice(db_session, make_invoice, other_client_record):
    _, invoice = await make_invoice(db_session)
    with pytest.raises(InvalidState):
        await PaymentService.register_payment(
            db_session, payment_request(other_client_record.id, "1000", invoice_id=invoice.id)
        )


@pytest.mark.asyncio
async def test_confirm_payment_updates_invoice(db_session, make_invoice):
    _, invoice = await make_invoice(db_session)
    await InvoiceService.send_invoice(db_session, invoice.id)
    payment = await PaymentService.register_payment(
        db_session, payment_request(invoice.client_id, "178500", invoice_id=invoice.id)
    )

    confirmed = await PaymentService.confirm_payment(db_session, payment.id, actor_id=uuid4())
    assert confirmed.status == PaymentStatus.CONFIRMED
    assert confirmed.confirmed_at is not None
    invoice = await InvoiceService.get_invoice(db_session, invoice.id)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.balance_due == Decimal("0")


@pytest.mark.asyncio
async def test_payment_confirmed_only_once(db_session, client_record):
    payment = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    await PaymentService.confirm_payment(db_session, payment.id)
    with pytest.raises(InvalidTransition):
        await PaymentService.confirm_payment(db_session, payment.id)


@pytest.mark.asyncio
async def test_rejected_payment_does_not_touch_invoice(db_session, make_invoice):
    _, invoice = await make_invoice(db_session)
    payment = await PaymentService.register_payment(
        db_session, payment_request(invoice.client_id, "1000", invoice_id=invoice.id)
    )
    rejected = await PaymentService.reject_payment(db_session, payment.id)
    assert rejected.status == PaymentStatus.REJECTED
    assert (await InvoiceService.get_invoice(db_session, invoice.id)).balance_due == Decimal("178500")

    with pytest.raises(InvalidTransition):
        await PaymentService.reject_payment(db_session, payment.id)


@pytest.mark.asyncio
async def test_import_transactions_share_a_batch(db_session):
    result = await import_lines(db_session, "1000", "2000")
    assert result.imported == 2
    assert len(result.import_batch) == 32

    lines = await ReconciliationService.list_transactions(db_session, import_batch=result.import_batch)
    assert {line.status for line in lines} == {ReconciliationStatus.UNMATCHED}
    assert sorted(line.amount for line in lines) == [Decimal("1000"), Decimal("2000")]


@pytest.mark.asyncio
async def test_match_links_both_sides_and_confirms_payment(db_session, make_invoice):
    _, invoice = await make_invoice(db_session)
    await InvoiceService.send_invoice(db_session, invoice.id)
    payment = await PaymentService.register_payment(
        db_session, payment_request(invoice.client_id, "78500", invoice_id=invoice.id)
    )
    imported = await import_lines(db_session, "78500")
    matched = []
    event_bus.subscribe(TransactionMatched, matched.append)

    transaction, payment = await ReconciliationService.match(
        db_session, imported.transaction_ids[0], payment.id, actor_id=uuid4()
    )

    assert transaction.status == ReconciliationStatus.MATCHED
    assert transaction.matched_payment_id == payment.id
    assert payment.bank_transaction_id == transaction.id
    assert payment.status == PaymentStatus.CONFIRMED
    assert len(matched) == 1
    invoice = await InvoiceService.get_invoice(db_session, invoice.id)
    assert invoice.balance_due == Decimal("100000")
    assert invoice.status == InvoiceStatus.PARTIAL


@pytest.mark.asyncio
async def test_amount_mismatch_writes_nothing(db_session, client_record):
    payment = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    payment_id = payment.id
    imported = await import_lines(db_session, "4999")
    transaction_id = imported.transaction_ids[0]

    with pytest.raises(AmountMismatch):
        await ReconciliationService.match(db_session, transaction_id, payment_id)
    await db_session.rollback()

    transaction = await ReconciliationService.get_transaction(db_session, transaction_id)
    payment = await PaymentService.get_payment(db_session, payment_id)
    assert transaction.status == ReconciliationStatus.UNMATCHED
    assert transaction.matched_payment_id is None
    assert payment.bank_transaction_id is None
    assert payment.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_transaction_and_payment_match_only_once(db_session, client_record):
    first = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    second = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    first_id, second_id = first.id, second.id
    imported = await import_lines(db_session, "5000", "5000")
    tx_a, tx_b = imported.transaction_ids

    await ReconciliationService.match(db_session, tx_a, first_id)

    with pytest.raises(AlreadyMatched):
        await ReconciliationService.match(db_session, tx_a, second_id)
    await db_session.rollback()
    with pytest.raises(AlreadyMatched):
        await ReconciliationService.match(db_session, tx_b, first_id)
    await db_session.rollback()

    # The free pair still matches
    transaction, payment = await ReconciliationService.match(db_session, tx_b, second_id)
    assert transaction.matched_payment_id == second_id


@pytest.mark.asyncio
async def test_rejected_payment_cannot_be_matched(db_session, client_record):
    payment = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    await PaymentService.reject_payment(db_session, payment.id)
    imported = await import_lines(db_session, "5000")
    with pytest.raises(InvalidState):
        await ReconciliationService.match(db_session, imported.transaction_ids[0], payment.id)


@pytest.mark.asyncio
async def test_unmatch_clears_both_sides_and_keeps_confirmation(db_session, client_record):
    payment = await PaymentService.register_payment(db_session, payment_request(client_record.id, "5000"))
    imported = await import_lines(db_session, "5000")
    transaction_id = imported.transaction_ids[0]
    await ReconciliationService.match(db_session, transaction_id, payment.id)

    transaction, unlinked = await ReconciliationService.unmatch(db_session, transaction_id)

    assert transaction.status == ReconciliationStatus.UNMATCHED
    assert transaction.matched_payment_id is None
    assert transaction.matched_at is None
    assert unlinked.bank_transaction_id is None
    assert unlinked.status == PaymentStatus.CONFIRMED

    unreconciled = await PaymentService.list_payments(db_session, unreconciled_only=True)
    assert [p.id for p in unreconciled] == [payment.id]

    with pytest.raises(InvalidState):
        await ReconciliationService.unmatch(db_session, transaction_id)
