"""Folio Service - sequential human-readable document codes"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config import settings
from settlement.models.lookups import FolioSequence


class FolioService:
    """
    Allocates folios such as ``CIE-000042`` from a per-kind counter row.

    The counter row is read with FOR UPDATE so concurrent allocations on the same
    kind serialize; the allocation commits with the caller's transaction.
    """

    @staticmethod
    async def next_folio(db: AsyncSession, prefix: str) -> str:
        counter = await FolioService._lock_counter(db, prefix)
        if counter is None:
            try:
                async with db.begin_nested():
                    db.add(FolioSequence(name=prefix, next_value=1))
            except IntegrityError:
                # Another transaction created the row first
                pass
            counter = await FolioService._lock_counter(db, prefix)

        value = counter.next_value
        counter.next_value = value + 1
        await db.flush()
        return f"{prefix}-{value:0{settings.FOLIO_PADDING}d}"

    @staticmethod
    async def _lock_counter(db: AsyncSession, prefix: str):
        result = await db.execute(
            select(FolioSequence)
            .where(FolioSequence.name == prefix)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
