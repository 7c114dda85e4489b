"""Lookup tables owned by external collaborators (clients, fleet, staff, catalogs)

Only the columns the settlement core reads are mapped here.
"""

from sqlalchemy import Column, Integer, JSON, Numeric, String

from settlement.models.base import BaseModel, enum_column, money_column
from settlement.models.enums import CommissionType


class Client(BaseModel):
    __tablename__ = "clients"

    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True, unique=True)
    tax_id = Column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Client {self.code or self.name}>"


class Operator(BaseModel):
    """
    Crane operator with a commission scheme.

    ``commission_tiers`` is a list of ``{"threshold": "<amount>", "percentage": "<rate>"}``
    used only by the tiered scheme.
    """
    __tablename__ = "operators"

    full_name = Column(String(255), nullable=False)
    employee_number = Column(String(50), nullable=True, unique=True)
    commission_type = enum_column(CommissionType, "commission_type", nullable=True)
    commission_percentage = Column(Numeric(5, 2), nullable=True)
    commission_fixed_amount = money_column(nullable=True)
    commission_tiers = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Operator {self.employee_number or self.full_name}>"


class Crane(BaseModel):
    __tablename__ = "cranes"

    unit_number = Column(String(50), nullable=False, unique=True)


class PaymentTerms(BaseModel):
    __tablename__ = "payment_terms"

    name = Column(String(100), nullable=False)
    days = Column(Integer, nullable=False, default=30)


class FolioSequence(BaseModel):
    """Next folio number per document kind, locked while allocating"""
    __tablename__ = "folio_sequences"

    name = Column(String(20), nullable=False, unique=True)
    next_value = Column(Integer, nullable=False, default=1)
