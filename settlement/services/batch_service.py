"""Batch Service - ordered, fail-fast application of service patches"""

import inspect
from typing import Awaitable, Callable, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.events import commit_and_publish
from settlement.core.exceptions import SettlementError
from settlement.core.logging import get_logger
from settlement.schemas.service import (
    BatchItem,
    BatchProgressEvent,
    BatchResult,
    ReferenceNumberingRequest,
    ServiceReferencePatch,
    ServiceStatusPatch,
)
from settlement.services.service_workflow import ServiceWorkflow

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchProgressEvent], Union[None, Awaitable[None]]]


class BatchService:
    """
    Applies a list of service patches strictly in order.

    Default mode commits every item on its own and stops at the first failure:
    items before it stay applied, items after it are never attempted. With
    ``atomic=True`` the whole list runs in one transaction instead and a
    failure rolls everything back.
    """

    @staticmethod
    async def apply(
        db: AsyncSession,
        items: Sequence[BatchItem],
        on_progress: Optional[ProgressCallback] = None,
        atomic: bool = False,
        actor_id: Optional[UUID] = None,
    ) -> BatchResult:
        total = len(items)
        events: List[BatchProgressEvent] = []

        async def emit(event: BatchProgressEvent) -> None:
            events.append(event)
            if on_progress is not None:
                result = on_progress(event)
                if inspect.isawaitable(result):
                    await result

        await emit(BatchProgressEvent(phase="start", total=total, current=0))
        logger.info("Batch started", extra={"total": total, "atomic": atomic})

        applied_ids: List[UUID] = []
        for index, item in enumerate(items):
            try:
                await BatchService._apply_item(db, item, auto_commit=not atomic, actor_id=actor_id)
            except (SettlementError, SQLAlchemyError) as exc:
                await db.rollback()
                code = exc.code if isinstance(exc, SettlementError) else "DATABASE_ERROR"
                message = exc.message if isinstance(exc, SettlementError) else "Database error"
                await emit(BatchProgressEvent(
                    phase="error", total=total, current=index + 1, item_id=item.service_id, message=message,
                ))
                logger.warning(
                    "Batch stopped at failing item",
                    extra={
                        "index": index,
                        "service_id": str(item.service_id),
                        "error_code": code,
                        "applied": 0 if atomic else len(applied_ids),
                    },
                )
                return BatchResult(
                    total=total,
                    applied=0 if atomic else len(applied_ids),
                    applied_ids=[] if atomic else applied_ids,
                    succeeded=False,
                    failed_index=index,
                    failed_item_id=item.service_id,
                    error_code=code,
                    error_message=message,
                    rolled_back=atomic,
                    events=events,
                )

            applied_ids.append(item.service_id)
            await emit(BatchProgressEvent(
                phase="progress", total=total, current=index + 1, item_id=item.service_id,
            ))

        if atomic:
            await commit_and_publish(db)

        await emit(BatchProgressEvent(phase="complete", total=total, current=total))
        logger.info("Batch completed", extra={"total": total, "atomic": atomic})
        return BatchResult(
            total=total,
            applied=len(applied_ids),
            applied_ids=applied_ids,
            succeeded=True,
            events=events,
        )

    @staticmethod
    async def _apply_item(
        db: AsyncSession,
        item: BatchItem,
        auto_commit: bool,
        actor_id: Optional[UUID],
    ) -> None:
        patch = item.patch
        if isinstance(patch, ServiceStatusPatch):
            await ServiceWorkflow.transition(
                db, item.service_id, patch.status, actor_id=actor_id, auto_commit=auto_commit,
            )
        elif isinstance(patch, ServiceReferencePatch):
            await ServiceWorkflow.apply_reference_patch(db, item.service_id, patch, auto_commit=auto_commit)
        else:
            raise TypeError(f"Unsupported patch type: {type(patch).__name__}")

    @staticmethod
    def build_reference_items(request: ReferenceNumberingRequest) -> List[BatchItem]:
        """
        Expand a numbering request into one reference patch per service.

        ``base_number`` gives every service the same reference; ``starting_number``
        gives consecutive references in the order the services were listed.
        """
        items: List[BatchItem] = []
        for offset, service_id in enumerate(request.service_ids):
            if request.base_number is not None:
                number = request.base_number
            else:
                number = str(request.starting_number + offset)
            reference = f"{request.prefix}{number}"
            items.append(BatchItem(
                service_id=service_id,
                patch=ServiceReferencePatch(**{request.field: reference}),
            ))
        return items
