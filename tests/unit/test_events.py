"""Unit tests for the domain event bus and session-scoped event recording."""

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from settlement.core.events import (
    DomainEvent,
    EventBus,
    InvoiceUpdated,
    PaymentConfirmed,
    discard_recorded,
    publish_recorded,
    record_event,
)


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_handlers():
    bus = EventBus()
    received = []

    def sync_handler(event):
        received.append(("sync", event))

    async def async_handler(event):
        received.append(("async", event))

    bus.subscribe(InvoiceUpdated, sync_handler)
    bus.subscribe(InvoiceUpdated, async_handler)
    event = InvoiceUpdated(invoice_id=uuid4(), status="paid", balance_due=Decimal("0"))
    await bus.publish(event)
    assert received == [("sync", event), ("async", event)]


@pytest.mark.asyncio
async def test_base_class_subscribers_see_every_event():
    bus = EventBus()
    seen = []
    bus.subscribe(DomainEvent, seen.append)
    await bus.publish(PaymentConfirmed(payment_id=uuid4(), invoice_id=None, amount=Decimal("10")))
    assert len(seen) == 1
    assert seen[0].name == "PaymentConfirmed"


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(InvoiceUpdated, broken)
    bus.subscribe(InvoiceUpdated, seen.append)
    await bus.publish(InvoiceUpdated(invoice_id=uuid4(), status="sent", balance_due=Decimal("5")))
    assert len(seen) == 1


def test_subscribe_is_idempotent_and_unsubscribe_removes():
    bus = EventBus()
    handler = MagicMock()
    bus.subscribe(InvoiceUpdated, handler)
    bus.subscribe(InvoiceUpdated, handler)
    assert bus._handlers[InvoiceUpdated] == [handler]
    bus.unsubscribe(InvoiceUpdated, handler)
    assert bus._handlers[InvoiceUpdated] == []


@pytest.mark.asyncio
async def test_recorded_events_publish_in_order(monkeypatch):
    from settlement.core import events as events_module

    bus = EventBus()
    seen = []
    bus.subscribe(DomainEvent, seen.append)
    monkeypatch.setattr(events_module, "event_bus", bus)

    db = MagicMock()
    db.info = {}
    first = InvoiceUpdated(invoice_id=uuid4(), status="sent", balance_due=Decimal("5"))
    second = InvoiceUpdated(invoice_id=uuid4(), status="paid", balance_due=Decimal("0"))
    record_event(db, first)
    record_event(db, second)
    await publish_recorded(db)
    assert seen == [first, second]

    # Nothing left to publish twice
    await publish_recorded(db)
    assert seen == [first, second]


def test_discard_recorded_drops_pending_events():
    db = MagicMock()
    db.info = {}
    record_event(db, InvoiceUpdated(invoice_id=uuid4(), status="sent", balance_due=Decimal("5")))
    discard_recorded(db)
    assert db.info == {}
