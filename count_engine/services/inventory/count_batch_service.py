import asyncio
import logging
from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.config import settings
from count_engine.core.exceptions import NotFoundError, error_message
from count_engine.schemas.inventory.inventory_count import BulkUpdateFailure, BulkUpdateResult, CountItemUpdate
from count_engine.services.inventory.inventory_count_service import InventoryCountService, count_item_update_statement

logger = logging.getLogger(__name__)


def chunked(updates: Sequence[CountItemUpdate], size: int) -> List[Sequence[CountItemUpdate]]:
    return [updates[i:i + size] for i in range(0, len(updates), size)]


class CountBatchService:
    """Applies many count submissions in bounded concurrent waves.

    Each wave holds at most ``chunk_size`` writes in flight, each on its own
    session, and waits for all of them to settle before the next wave starts.
    A pause of ``chunk_delay_ms`` separates waves to keep pool usage low.
    """

    def __init__(
        self,
        db: AsyncSession,
        scope: CallerScope,
        session_factory: Optional[async_sessionmaker] = None,
        chunk_size: Optional[int] = None,
        chunk_delay_ms: Optional[int] = None,
        write_timeout: Optional[float] = None
    ):
        self.scope = require_caller_scope(scope)
        self.db = db
        self.session_factory = session_factory or async_sessionmaker(
            bind=db.bind, class_=AsyncSession, expire_on_commit=False
        )
        self.chunk_size = chunk_size or settings.COUNT_BATCH_CHUNK_SIZE
        self.chunk_delay_ms = settings.COUNT_BATCH_CHUNK_DELAY_MS if chunk_delay_ms is None else chunk_delay_ms
        self.write_timeout = write_timeout or settings.COUNT_BATCH_WRITE_TIMEOUT_SECONDS
        self.count_service = InventoryCountService(db, scope, self.session_factory)

    async def bulk_update_count_items(self, count_id: int, updates: List[CountItemUpdate]) -> BulkUpdateResult:
        """Apply per-item submissions; per-item failures are returned, not raised"""
        await self.count_service.get_count_in_progress(count_id)

        result = BulkUpdateResult()
        chunks = chunked(updates, self.chunk_size)
        logger.info(f"Starting bulk update for count {count_id} with {len(updates)} items in {len(chunks)} chunks")

        for index, chunk in enumerate(chunks):
            outcomes = await asyncio.gather(
                *(self._write_count_item(count_id, submission) for submission in chunk),
                return_exceptions=True
            )
            for submission, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    result.failed.append(
                        BulkUpdateFailure(item_id=submission.item_id, error=error_message(outcome))
                    )
                else:
                    result.saved += 1

            if index < len(chunks) - 1 and self.chunk_delay_ms > 0:
                await asyncio.sleep(self.chunk_delay_ms / 1000)

        # once per batch, not per chunk
        await self.count_service.recalculate_count_totals(count_id)

        if result.failed:
            logger.error(
                f"Bulk update for count {count_id}: {len(result.failed)} of {len(updates)} items failed, "
                f"first error: {result.failed[0].error}"
            )
        logger.info(f"Bulk update for count {count_id}: {result.saved} saved, {len(result.failed)} failed")
        return result

    async def _write_count_item(self, count_id: int, submission: CountItemUpdate) -> None:
        stmt = count_item_update_statement(count_id, submission, self.scope.user_id)
        async with self.session_factory() as session:
            outcome = await asyncio.wait_for(session.execute(stmt), timeout=self.write_timeout)
            if outcome.rowcount == 0:
                raise NotFoundError(f"Item {submission.item_id} is not part of count {count_id}")
            await session.commit()
