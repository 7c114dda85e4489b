"""Status transition tables for services, closures, invoices and liquidations"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping

from settlement.core.exceptions import InvalidTransition
from settlement.models.enums import (
    ClosureStatus, InvoiceStatus, LiquidationStatus, ServiceStatus,
)


class TransitionTable:
    """Allowed ``from -> {to}`` moves for one entity type"""

    def __init__(self, entity: str, moves: Mapping[Enum, Iterable[Enum]]):
        self.entity = entity
        self._moves: Dict[Enum, FrozenSet[Enum]] = {k: frozenset(v) for k, v in moves.items()}

    def allowed_targets(self, current: Enum) -> FrozenSet[Enum]:
        return self._moves.get(current, frozenset())

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return target in self.allowed_targets(current)

    def ensure(self, current: Enum, target: Enum) -> None:
        """Raise InvalidTransition carrying (current, target) unless the move is allowed"""
        if not self.can_transition(current, target):
            raise InvalidTransition(self.entity, current, target)

    def is_terminal(self, status: Enum) -> bool:
        return not self.allowed_targets(status)


# Pipeline columns in order; drag-and-drop may skip columns but never go back
SERVICE_FLOW = (
    ServiceStatus.PENDING,
    ServiceStatus.DISPATCHED,
    ServiceStatus.IN_TRANSIT,
    ServiceStatus.ON_SITE,
    ServiceStatus.IN_PROGRESS,
    ServiceStatus.COMPLETED,
)

CLOSURE_ELIGIBLE_SERVICE_STATUSES = frozenset({ServiceStatus.COMPLETED, ServiceStatus.INVOICED})
COMMISSIONABLE_SERVICE_STATUSES = CLOSURE_ELIGIBLE_SERVICE_STATUSES


def _service_moves() -> Dict[ServiceStatus, set]:
    moves: Dict[ServiceStatus, set] = {}
    for index, status in enumerate(SERVICE_FLOW):
        moves[status] = set(SERVICE_FLOW[index + 1:])
        if status != ServiceStatus.COMPLETED:
            moves[status].add(ServiceStatus.CANCELLED)
    moves[ServiceStatus.COMPLETED] = {ServiceStatus.INVOICED}
    moves[ServiceStatus.INVOICED] = set()
    moves[ServiceStatus.CANCELLED] = set()
    return moves


SERVICE_TRANSITIONS = TransitionTable("Service", _service_moves())

CLOSURE_TRANSITIONS = TransitionTable("BillingClosure", {
    ClosureStatus.DRAFT: {ClosureStatus.APPROVED, ClosureStatus.CANCELLED},
    ClosureStatus.APPROVED: {ClosureStatus.INVOICING},
    ClosureStatus.INVOICING: {ClosureStatus.INVOICED},
})

# Payments drive partial/overdue/paid; users drive sent/cancelled
INVOICE_TRANSITIONS = TransitionTable("Invoice", {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PENDING: {
        InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE, InvoiceStatus.PAID, InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.SENT: {InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE, InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PARTIAL: {InvoiceStatus.OVERDUE, InvoiceStatus.PAID},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PARTIAL, InvoiceStatus.PAID},
})

LIQUIDATION_TRANSITIONS = TransitionTable("CommissionLiquidation", {
    LiquidationStatus.PENDING: {LiquidationStatus.APPROVED, LiquidationStatus.CANCELLED},
    LiquidationStatus.APPROVED: {LiquidationStatus.PAID},
})
