"""Typed settlement errors.

Every error carries a machine-readable ``code`` and structured ``details`` so the
API layer can translate it into the standard error envelope without parsing
messages.

    SettlementError
    +-- EntityNotFound
    +-- InvalidState
    |   +-- InvalidTransition
    |   +-- ClosureNotApproved
    |   +-- ClosureAlreadyInvoiced
    +-- ReconciliationConflict
    |   +-- AlreadyMatched
    |   +-- AmountMismatch
    +-- EmptyAggregation
    |   +-- NoEligibleServices
    |   +-- NoEntriesInPeriod
    +-- DependencyUnavailable
    +-- ConcurrentModification
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID


class SettlementError(Exception):
    """Base class for every error the settlement core reports to its callers"""

    code: str = "SETTLEMENT_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = {k: _plain(v) for k, v in details.items()}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


def _plain(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    return value


class EntityNotFound(SettlementError):
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} does not exist", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InvalidState(SettlementError):
    """Precondition on the current status of an entity was not met"""

    code = "INVALID_STATE"


class InvalidTransition(InvalidState):
    """Illegal status move; carries the attempted (from, to) pair"""

    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, from_status: Any, to_status: Any):
        super().__init__(
            f"{entity} cannot move from {_plain(from_status)} to {_plain(to_status)}",
            entity=entity,
            from_status=from_status,
            to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class ClosureNotApproved(InvalidState):
    code = "CLOSURE_NOT_APPROVED"

    def __init__(self, closure_id: UUID, status: Any):
        super().__init__(
            f"Closure {closure_id} must be approved before invoicing (status: {_plain(status)})",
            closure_id=closure_id,
            status=status,
        )


class ClosureAlreadyInvoiced(InvalidState):
    code = "CLOSURE_ALREADY_INVOICED"

    def __init__(self, closure_id: UUID, invoice_id: Optional[UUID] = None):
        super().__init__(
            f"Closure {closure_id} has already been invoiced",
            closure_id=closure_id,
            invoice_id=invoice_id,
        )


class ReconciliationConflict(SettlementError):
    code = "RECONCILIATION_CONFLICT"


class AlreadyMatched(ReconciliationConflict):
    code = "ALREADY_MATCHED"


class AmountMismatch(ReconciliationConflict):
    code = "AMOUNT_MISMATCH"

    def __init__(self, transaction_amount: Decimal, payment_amount: Decimal):
        super().__init__(
            f"Bank transaction amount {transaction_amount} does not equal payment amount {payment_amount}",
            transaction_amount=transaction_amount,
            payment_amount=payment_amount,
        )


class EmptyAggregation(SettlementError):
    code = "EMPTY_AGGREGATION"


class NoEligibleServices(EmptyAggregation):
    code = "NO_ELIGIBLE_SERVICES"


class NoEntriesInPeriod(EmptyAggregation):
    code = "NO_ENTRIES_IN_PERIOD"


class DependencyUnavailable(SettlementError):
    """A lookup in an external collaborator failed"""

    code = "DEPENDENCY_UNAVAILABLE"


class ConcurrentModification(SettlementError):
    """Row changed underneath an update that expected a specific version"""

    code = "CONCURRENT_MODIFICATION"
