"""Base Models and Mixins for DRY principles"""

import enum
import uuid
from typing import Type

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import declared_attr

from settlement.database import Base
from settlement.utils.time import get_utc_now


def enum_column(enum_cls: Type[enum.Enum], name: str, **kwargs) -> Column:
    """Enum column persisted by member value (``"in_transit"``), not by member name"""
    return Column(
        Enum(
            enum_cls,
            name=name,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


def money_column(**kwargs) -> Column:
    """Fixed-point monetary amount"""
    kwargs.setdefault("nullable", False)
    return Column(Numeric(14, 2, asdecimal=True), **kwargs)


class BaseModel(Base):
    """
    Base model class with common fields for all models.

    Provides:
    - UUID primary key
    - created_at timestamp
    - updated_at timestamp
    """
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class ClientScopedMixin:
    """
    Mixin for documents billed to (or paid by) a client.

    Provides:
    - client_id foreign key
    """

    @declared_attr
    def client_id(cls):
        return Column(
            Uuid(as_uuid=True),
            ForeignKey("clients.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        )


class ActorStampMixin:
    """
    Mixin for records whose creator is tracked.

    Provides:
    - created_by actor id (from the access token, users live elsewhere)
    """
    created_by = Column(Uuid(as_uuid=True), nullable=True)
