import asyncio
from unittest.mock import AsyncMock

import pytest

from tryon.jobs.dispatcher import DispatchOutcome, DispatchResult
from tryon.jobs.errors import JobNotFoundError
from tryon.jobs.in_process_queue import InProcessQueue
from tryon.jobs.models import JobStatus


@pytest.mark.anyio
async def test_submitted_jobs_are_dispatched_in_background(store, dispatcher, new_job):
    queue = InProcessQueue(dispatcher, workers=2)
    jobs = [await store.create(new_job(user_id=f"user-{i}")) for i in range(3)]
    await queue.start()
    try:
        for job in jobs:
            assert await queue.submit(job.id) == job.id
        await asyncio.wait_for(queue.join(), timeout=5.0)
    finally:
        await queue.stop()

    for job in jobs:
        assert (await store.get(job.id)).status is JobStatus.COMPLETED
    assert queue.pending == 0


@pytest.mark.anyio
async def test_worker_survives_dispatch_errors():
    dispatcher = AsyncMock()
    dispatcher.process_job.side_effect = [
        JobNotFoundError("gone"),
        RuntimeError("failure write failed"),
        DispatchResult(job_id="ok", outcome=DispatchOutcome.COMPLETED),
    ]
    queue = InProcessQueue(dispatcher, workers=1)
    await queue.start()
    try:
        for job_id in ("gone", "broken", "ok"):
            await queue.submit(job_id)
        await asyncio.wait_for(queue.join(), timeout=5.0)
    finally:
        await queue.stop()

    assert dispatcher.process_job.await_count == 3
