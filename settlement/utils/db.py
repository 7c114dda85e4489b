"""Small query helpers shared by the settlement services"""

from typing import Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.exceptions import EntityNotFound

M = TypeVar("M")


async def get_or_raise(
    db: AsyncSession,
    model: Type[M],
    entity_id: UUID,
    for_update: bool = False,
    entity: Optional[str] = None,
) -> M:
    """
    Load one row by id or raise EntityNotFound.

    With ``for_update`` the row is locked (SELECT ... FOR UPDATE) and any copy
    already in the identity map is refreshed from the locked read.
    """
    stmt = select(model).where(model.id == entity_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    row = result.scalar_one_or_none()
    if row is None:
        raise EntityNotFound(entity or model.__name__, entity_id)
    return row
