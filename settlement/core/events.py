"""Domain events published after settlement writes commit.

Read models (dashboards, caches, notification senders) subscribe to the event
types they care about instead of guessing which cache keys a mutation touched.
"""

import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Type, Union
from uuid import UUID

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from settlement.core.logging import get_logger
from settlement.utils.time import get_utc_now

logger = get_logger(__name__)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=get_utc_now)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, kw_only=True)
class ServiceStatusChanged(DomainEvent):
    service_id: UUID
    from_status: str
    to_status: str


@dataclass(frozen=True, kw_only=True)
class ServiceUpdated(DomainEvent):
    service_id: UUID
    fields: tuple


@dataclass(frozen=True, kw_only=True)
class ClosureCreated(DomainEvent):
    closure_id: UUID
    client_id: UUID
    total: Decimal


@dataclass(frozen=True, kw_only=True)
class ClosureApproved(DomainEvent):
    closure_id: UUID


@dataclass(frozen=True, kw_only=True)
class ClosureCancelled(DomainEvent):
    closure_id: UUID


@dataclass(frozen=True, kw_only=True)
class ClosureInvoiced(DomainEvent):
    closure_id: UUID
    invoice_id: UUID


@dataclass(frozen=True, kw_only=True)
class InvoiceUpdated(DomainEvent):
    invoice_id: UUID
    status: str
    balance_due: Decimal


@dataclass(frozen=True, kw_only=True)
class PaymentRegistered(DomainEvent):
    payment_id: UUID
    invoice_id: Optional[UUID]
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class PaymentConfirmed(DomainEvent):
    payment_id: UUID
    invoice_id: Optional[UUID]
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class PaymentRejected(DomainEvent):
    payment_id: UUID


@dataclass(frozen=True, kw_only=True)
class TransactionMatched(DomainEvent):
    transaction_id: UUID
    payment_id: UUID


@dataclass(frozen=True, kw_only=True)
class TransactionUnmatched(DomainEvent):
    transaction_id: UUID
    payment_id: UUID


@dataclass(frozen=True, kw_only=True)
class CommissionsComputed(DomainEvent):
    service_id: UUID
    entry_count: int


@dataclass(frozen=True, kw_only=True)
class LiquidationUpdated(DomainEvent):
    liquidation_id: UUID
    status: str


Handler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventBus:
    """In-process publish/subscribe keyed by event class (subclasses reach base-class handlers)"""

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    async def publish(self, event: DomainEvent) -> None:
        """
        Deliver an event to every subscriber.

        The triggering write has already committed, so a failing subscriber is
        logged and the remaining subscribers still run.
        """
        for event_type in type(event).__mro__:
            for handler in list(self._handlers.get(event_type, [])):
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception(
                        "Event subscriber failed",
                        extra={"event": event.name, "handler": getattr(handler, "__name__", repr(handler))},
                    )


# Global event bus instance
event_bus = EventBus()


_PENDING_EVENTS_KEY = "settlement.pending_events"


@sa_event.listens_for(Session, "after_rollback")
def _discard_on_rollback(session) -> None:
    session.info.pop(_PENDING_EVENTS_KEY, None)


def record_event(db, event: DomainEvent) -> None:
    """Queue an event on the session; it is published once the transaction commits"""
    db.info.setdefault(_PENDING_EVENTS_KEY, []).append(event)


def discard_recorded(db) -> None:
    db.info.pop(_PENDING_EVENTS_KEY, None)


async def publish_recorded(db) -> None:
    """Publish everything queued on the session, in recording order"""
    events = db.info.pop(_PENDING_EVENTS_KEY, [])
    for event in events:
        await event_bus.publish(event)


async def commit_and_publish(db) -> None:
    await db.commit()
    await publish_recorded(db)
