"""
Scheduled NotuBiz synchronization job.

Runs the bulk event sync for the default scope every
SYNC_INTERVAL_MINUTES, or once when started as notubiz_sync_once.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from notubiz_sync.config import settings
from notubiz_sync.db.helpers import apply_schema
from notubiz_sync.db.pool import db_pool
from notubiz_sync.features.event_sync.domain.errors import EventSyncError
from notubiz_sync.features.event_sync.services.sync_service import (
    EventSyncService,
    event_sync_service,
)
from notubiz_sync.infrastructure.observability.logging import get_logger
from notubiz_sync.services.redis_client import fast_redis

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


class NotubizSyncJob:
    """Single-flight wrapper around EventSyncService.run()."""

    def __init__(self, service: EventSyncService | None = None):
        self._service = service or event_sync_service
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_result: dict | None = None

    async def run_once(self) -> dict:
        if self.is_running:
            logger.warning("NotuBiz sync job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        started = datetime.now(UTC)
        try:
            result = await self._service.run()
            summary = result.to_dict()
            summary.pop("objects", None)
            summary["duration_seconds"] = round(
                (datetime.now(UTC) - started).total_seconds(), 2
            )
            self.last_result = summary
            return summary
        finally:
            self.last_run_time = started
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "job_name": "notubiz_sync",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": settings.SYNC_INTERVAL_MINUTES,
            "last_run": self.last_result,
        }


notubiz_sync_job = NotubizSyncJob()


@asynccontextmanager
async def job_resources() -> AsyncGenerator[None, None]:
    """Database pool and Redis for the lifetime of a worker process."""
    await db_pool.initialize()
    if settings.DB_APPLY_SCHEMA:
        await apply_schema()
    await fast_redis.initialize()
    try:
        yield
    finally:
        await fast_redis.close()
        await db_pool.close()


async def run_notubiz_sync_once() -> None:
    async with job_resources():
        summary = await notubiz_sync_job.run_once()
    print(f"NotuBiz sync completed: {summary}")


async def start_notubiz_sync_scheduler() -> None:
    interval_minutes = settings.SYNC_INTERVAL_MINUTES
    logger.info("Starting NotuBiz sync scheduler", interval_minutes=interval_minutes)

    async with job_resources():
        while True:
            try:
                summary = await notubiz_sync_job.run_once()
                if not summary.get("skipped", False):
                    logger.info(
                        "NotuBiz sync cycle completed",
                        **{k: v for k, v in summary.items() if k != "warnings"},
                    )
                await asyncio.sleep(interval_minutes * 60)
            except EventSyncError as exc:
                # Configuration problems will not fix themselves between cycles
                if not exc.recoverable:
                    logger.error("NotuBiz sync scheduler stopped", error=exc.message)
                    raise
                logger.error("NotuBiz sync cycle failed", error=exc.message)
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
            except Exception as exc:
                logger.error(
                    "Error in NotuBiz sync scheduler",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
