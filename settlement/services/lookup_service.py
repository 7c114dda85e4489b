"""Lookup Service - read-only access to collaborator-owned records"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.exceptions import DependencyUnavailable, EntityNotFound
from settlement.core.logging import get_logger
from settlement.models.lookups import Client, Crane, Operator, PaymentTerms

logger = get_logger(__name__)


class LookupService:
    """Clients, operators, cranes and payment terms are owned elsewhere; failures surface as DependencyUnavailable"""

    @staticmethod
    async def _fetch(db: AsyncSession, model, entity_id: UUID):
        try:
            result = await db.execute(select(model).where(model.id == entity_id))
        except SQLAlchemyError as exc:
            logger.error(
                "Lookup failed",
                extra={"entity": model.__name__, "entity_id": str(entity_id)},
                exc_info=True,
            )
            raise DependencyUnavailable(
                f"{model.__name__} lookup failed", entity=model.__name__, entity_id=entity_id
            ) from exc
        return result.scalar_one_or_none()

    @staticmethod
    async def get_client(db: AsyncSession, client_id: UUID) -> Client:
        client = await LookupService._fetch(db, Client, client_id)
        if client is None:
            raise EntityNotFound("Client", client_id)
        return client

    @staticmethod
    async def get_operator(db: AsyncSession, operator_id: UUID) -> Operator:
        operator = await LookupService._fetch(db, Operator, operator_id)
        if operator is None:
            raise EntityNotFound("Operator", operator_id)
        return operator

    @staticmethod
    async def get_crane(db: AsyncSession, crane_id: UUID) -> Crane:
        crane = await LookupService._fetch(db, Crane, crane_id)
        if crane is None:
            raise EntityNotFound("Crane", crane_id)
        return crane

    @staticmethod
    async def get_payment_terms(db: AsyncSession, payment_terms_id: Optional[UUID]) -> Optional[PaymentTerms]:
        if payment_terms_id is None:
            return None
        terms = await LookupService._fetch(db, PaymentTerms, payment_terms_id)
        if terms is None:
            raise EntityNotFound("PaymentTerms", payment_terms_id)
        return terms
