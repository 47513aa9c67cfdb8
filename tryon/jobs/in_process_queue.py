"""In-process dispatch queue using asyncio.

Job ids are processed by a small pool of background worker tasks, so the
request that created a job never waits on (or keeps alive) its processing.
No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import List

from tryon.jobs.dispatcher import TransformationDispatcher
from tryon.jobs.errors import JobNotFoundError
from tryon.jobs.trigger import JobTrigger

logger = logging.getLogger(__name__)


class InProcessQueue(JobTrigger):
    """Local async dispatch queue."""

    def __init__(self, dispatcher: TransformationDispatcher, workers: int = 2):
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._dispatcher = dispatcher
        self._workers = max(1, workers)
        self._tasks: List[asyncio.Task] = []
        self._running = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def submit(self, job_id: str) -> str:
        await self._queue.put(job_id)
        return job_id

    async def start(self) -> None:
        self._running = True
        self._tasks = [
            asyncio.create_task(self._worker_loop(i)) for i in range(self._workers)
        ]

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def join(self) -> None:
        """Wait until every submitted job id has been processed."""
        await self._queue.join()

    async def _worker_loop(self, worker: int) -> None:
        """Process job ids from the queue until stopped."""
        while self._running:
            try:
                job_id = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                result = await self._dispatcher.process_job(job_id)
                logger.info("Worker %d finished job %s: %s", worker, job_id, result.outcome.value)
            except JobNotFoundError:
                logger.error("Worker %d: job %s not found", worker, job_id)
            except Exception:
                # Dispatcher already attempted the failure write
                logger.exception("Worker %d: dispatch of job %s raised", worker, job_id)
            finally:
                self._queue.task_done()
