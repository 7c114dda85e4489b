"""Models Package - Export all models for easy imports"""

from settlement.models.base import BaseModel, ClientScopedMixin, ActorStampMixin
from settlement.models.enums import *
from settlement.models.lookups import Client, Operator, Crane, PaymentTerms, FolioSequence
from settlement.models.service import Service, ServiceOperator
from settlement.models.billing import BillingClosure, BillingClosureService, Invoice
from settlement.models.payment import Payment, BankTransaction
from settlement.models.commission import CommissionEntry, CommissionLiquidation


__all__ = [
    # Base classes
    "BaseModel",
    "ClientScopedMixin",
    "ActorStampMixin",

    # Lookups
    "Client",
    "Operator",
    "Crane",
    "PaymentTerms",
    "FolioSequence",

    # Field operations
    "Service",
    "ServiceOperator",

    # Billing
    "BillingClosure",
    "BillingClosureService",
    "Invoice",

    # Payments
    "Payment",
    "BankTransaction",

    # Commissions
    "CommissionEntry",
    "CommissionLiquidation",
]
