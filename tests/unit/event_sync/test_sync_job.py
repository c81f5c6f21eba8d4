import asyncio
from unittest.mock import AsyncMock

import pytest

from notubiz_sync.features.event_sync.domain.models import SyncRunResult, TargetObject
from notubiz_sync.features.event_sync.jobs.sync_job import NotubizSyncJob


@pytest.mark.asyncio
async def test_run_once_returns_summary_without_objects():
    result = SyncRunResult(
        source_name="NotuBiz",
        fetched=1,
        synced=[TargetObject(id="o1", schema="s", category="c", data={})],
    )
    service = AsyncMock()
    service.run.return_value = result
    job = NotubizSyncJob(service=service)

    summary = await job.run_once()

    assert summary["synced"] == 1
    assert "objects" not in summary
    assert job.get_job_status()["last_run"] == summary
    assert job.is_running is False


@pytest.mark.asyncio
async def test_run_once_is_single_flight():
    release = asyncio.Event()

    async def slow_run():
        await release.wait()
        return SyncRunResult(source_name="NotuBiz")

    service = AsyncMock()
    service.run.side_effect = slow_run
    job = NotubizSyncJob(service=service)

    first = asyncio.create_task(job.run_once())
    await asyncio.sleep(0)
    second = await job.run_once()
    release.set()
    await first

    assert second == {"skipped": True, "reason": "already_running"}
    service.run.assert_awaited_once()
