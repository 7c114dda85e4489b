"""Centralized Enum Definitions"""

import enum


# Domain 1: Access
class ActorRole(str, enum.Enum):
    """Roles carried in access tokens"""
    ADMIN = "admin"
    FINANCE = "finance"
    DISPATCHER = "dispatcher"
    VIEWER = "viewer"


# Domain 2: Field operations
class ServiceStatus(str, enum.Enum):
    """Service lifecycle, in pipeline column order"""
    PENDING = "pending"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    ON_SITE = "on_site"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class ServicePriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class OperatorRole(str, enum.Enum):
    """Role an operator plays on a service"""
    PRIMARY = "primary"
    ASSISTANT = "assistant"
    SUPERVISOR = "supervisor"


class CommissionType(str, enum.Enum):
    """Operator commission scheme"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    MIXED = "mixed"
    TIERED = "tiered"


# Domain 3: Billing
class ClosureStatus(str, enum.Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    INVOICING = "invoicing"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PENDING = "pending"
    OVERDUE = "overdue"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


class CancellationReason(str, enum.Enum):
    """Why an invoice was voided with a credit note"""
    CLIENT_DATA_ERROR = "client_data_error"
    AMOUNT_ERROR = "amount_error"
    SERVICE_NOT_PROVIDED = "service_not_provided"
    DUPLICATE = "duplicate"
    CLIENT_REQUEST = "client_request"
    OTHER = "other"


# Domain 4: Payments & reconciliation
class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"
    CARD = "card"


class ReconciliationStatus(str, enum.Enum):
    UNMATCHED = "unmatched"
    MATCHED = "matched"


# Domain 5: Commissions
class LiquidationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"
