"""
Asset garbage collection.

Processes the deletion queue in small batches. For each due job:

1. Claim it (pending/failed -> processing); skip if another worker won.
2. Re-count references. If the count cannot be read the job fails and is
   retried after the base delay.
3. Still referenced: the job is dropped and the asset kept.
4. Otherwise delete the object from storage, then the asset row, then the job.
   Any failure marks the job failed with exponential backoff.

One bad row never aborts the batch.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from src.content.repository import BaseContentRepository, utcnow
from src.types.assets import AssetDeletionJob, GCResult
from src.utils.logging import timed

from .storage import BaseObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 25
MAX_BATCH_SIZE = 100
BASE_RETRY_SECONDS = 60
MAX_RETRY_SECONDS = 3600
MAX_BACKOFF_EXPONENT = 5


def clamp_batch_size(
    batch_size: Optional[int],
    default: int = DEFAULT_BATCH_SIZE,
    maximum: int = MAX_BATCH_SIZE,
) -> int:
    if batch_size is None:
        batch_size = default
    return max(1, min(int(batch_size), maximum))


def retry_delay_seconds(
    attempt_count: int,
    base: int = BASE_RETRY_SECONDS,
    maximum: int = MAX_RETRY_SECONDS,
) -> int:
    """Backoff after the given (already incremented) attempt count."""
    exponent = min(max(attempt_count, 0), MAX_BACKOFF_EXPONENT)
    return min(base * (2 ** exponent), maximum)


class AssetGarbageCollector:
    """Deletes queued assets that no version references anymore."""

    def __init__(
        self,
        repository: BaseContentRepository,
        storage: BaseObjectStorage,
        default_batch_size: int = DEFAULT_BATCH_SIZE,
        max_batch_size: int = MAX_BATCH_SIZE,
        base_retry_seconds: int = BASE_RETRY_SECONDS,
        max_retry_seconds: int = MAX_RETRY_SECONDS,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.default_batch_size = default_batch_size
        self.max_batch_size = max_batch_size
        self.base_retry_seconds = base_retry_seconds
        self.max_retry_seconds = max_retry_seconds

    @timed("asset_gc_batch", log_level=logging.INFO)
    async def run_batch(self, batch_size: Optional[int] = None) -> GCResult:
        """
        Process up to ``batch_size`` due deletion jobs.

        Args:
            batch_size: Requested size, clamped to [1, max_batch_size].

        Returns:
            GCResult counters for the batch.
        """
        size = clamp_batch_size(batch_size, self.default_batch_size, self.max_batch_size)
        result = GCResult(batch_size=size)

        now = utcnow()
        jobs = await self.repository.list_due_deletions(now, size)

        for job in jobs:
            try:
                claimed = await self.repository.claim_deletion(job.id, utcnow())
                if claimed is None:
                    continue
                outcome = await self._process(claimed)
            except Exception as e:
                attempt = job.attempt_count + 1
                delay = retry_delay_seconds(attempt, self.base_retry_seconds, self.max_retry_seconds)
                logger.error(f"Deletion job {job.id} for {job.object_key} failed (attempt {attempt}): {e}")
                await self._fail(job, attempt, str(e), delay)
                outcome = "failed"

            result.processed += 1
            if outcome == "deleted":
                result.deleted += 1
            elif outcome == "referenced":
                result.skipped_referenced += 1
            else:
                result.failed += 1

        if result.processed:
            logger.info(
                f"Asset GC processed {result.processed} job(s): {result.deleted} deleted, "
                f"{result.skipped_referenced} still referenced, {result.failed} failed"
            )
        return result

    async def _process(self, job: AssetDeletionJob) -> str:
        try:
            counts = await self.repository.count_refs([job.asset_id])
        except Exception as e:
            logger.warning(f"Could not count references for asset {job.asset_id}: {e}")
            await self._fail(job, job.attempt_count + 1, str(e), self.base_retry_seconds)
            return "failed"

        if counts.get(job.asset_id, 0) > 0:
            await self.repository.delete_deletion(job.id)
            logger.debug(f"Asset {job.object_key} is referenced again; keeping it")
            return "referenced"

        try:
            await self.storage.delete_object(job.object_key)
            await self.repository.delete_asset(job.asset_id)
            await self.repository.delete_deletion(job.id)
        except Exception as e:
            attempt = job.attempt_count + 1
            delay = retry_delay_seconds(attempt, self.base_retry_seconds, self.max_retry_seconds)
            logger.error(f"Failed to delete asset {job.object_key} (attempt {attempt}): {e}")
            await self._fail(job, attempt, str(e), delay)
            return "failed"

        logger.info(f"Deleted asset {job.object_key}")
        return "deleted"

    async def _fail(self, job: AssetDeletionJob, attempt_count: int, error: str, delay_seconds: int) -> None:
        next_attempt_at: datetime = utcnow() + timedelta(seconds=delay_seconds)
        try:
            await self.repository.fail_deletion(job.id, attempt_count, error[:1000], next_attempt_at)
        except Exception as e:
            logger.error(f"Failed to record failure for deletion job {job.id}: {e}")


def get_asset_gc() -> AssetGarbageCollector:
    """Build a collector from the configured repository, storage and settings."""
    from src.config import get_settings
    from src.content.repository import get_content_repository

    from .storage import get_object_storage

    gc = get_settings().asset_gc
    return AssetGarbageCollector(
        get_content_repository(),
        get_object_storage(),
        default_batch_size=gc.asset_gc_default_batch_size,
        max_batch_size=gc.asset_gc_max_batch_size,
        base_retry_seconds=gc.asset_gc_base_retry_seconds,
        max_retry_seconds=gc.asset_gc_max_retry_seconds,
    )
