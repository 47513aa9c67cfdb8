"""Client-side job watcher.

Observes one job until it reaches a terminal state or a time budget runs out.
Two modes share the same update handler:

  push  - one immediate fetch, then change events from a subscription scoped
          to the job id
  poll  - one immediate fetch, then a fetch every ``poll_interval`` seconds

All handles of a running observation (poll task, push consumer, subscription,
deadline timer) live on a single ObservationSession, so stopping is one call
that clears every handle and can be repeated safely.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from tryon.jobs.errors import WATCHER_TIMEOUT_MESSAGE
from tryon.jobs.lifecycle import NOT_STARTED_STATES, TERMINAL_JOB_STATES
from tryon.jobs.models import JobRecord, JobStatus
from tryon.jobs.store import JobStore, Subscription

logger = logging.getLogger(__name__)


class WatchMode(str, Enum):
    PUSH = "push"
    POLL = "poll"


@dataclass
class WatchFailure:
    """Why a watch ended without success.

    ``timed_out`` separates the watcher giving up from the job itself failing;
    a timed-out job may still be running server side.
    """
    message: str
    job: Optional[JobRecord] = None
    timed_out: bool = False


StatusChangeCallback = Callable[[JobRecord, JobStatus], Any]
CompleteCallback = Callable[[JobRecord], Any]
ErrorCallback = Callable[[WatchFailure], Any]


def _progress_rank(status: JobStatus) -> int:
    if status in NOT_STARTED_STATES:
        return 0
    if status in TERMINAL_JOB_STATES:
        return 2
    return 1


class ObservationSession:
    """Handles owned by one start()/stop() cycle of a watcher."""

    def __init__(self):
        self.started_at = time.monotonic()
        self.poll_task: Optional[asyncio.Task] = None
        self.push_task: Optional[asyncio.Task] = None
        self.deadline_task: Optional[asyncio.Task] = None
        self.subscription: Optional[Subscription] = None
        # Set once the outcome is decided; no callback fires after this.
        self.finished = False
        self.closed = False
        # Released after the final callback has run
        self.done = asyncio.Event()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def has_handles(self) -> bool:
        return any(
            h is not None
            for h in (self.poll_task, self.push_task, self.deadline_task, self.subscription)
        )

    async def close(self) -> None:
        """Cancel tasks and unsubscribe. Safe to call repeatedly, from any task."""
        self.finished = True
        self.closed = True
        current = asyncio.current_task()
        tasks = [t for t in (self.poll_task, self.push_task, self.deadline_task) if t is not None]
        subscription = self.subscription
        self.poll_task = self.push_task = self.deadline_task = None
        self.subscription = None

        others = [t for t in tasks if t is not current]
        for task in others:
            if not task.done():
                task.cancel()
        if subscription is not None:
            try:
                await subscription.unsubscribe()
            except Exception:
                logger.exception("Failed to remove job subscription")
        if others:
            await asyncio.gather(*others, return_exceptions=True)


class JobWatcher:
    """Watches a single job and raises lifecycle callbacks.

    Usage:
        watcher = JobWatcher(store, job_id, mode=WatchMode.POLL,
                             on_complete=show_result, on_error=show_error)
        await watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(
        self,
        store: JobStore,
        job_id: str,
        mode: WatchMode = WatchMode.PUSH,
        poll_interval: float = 4.0,
        timeout: float = 300.0,
        on_status_change: Optional[StatusChangeCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        mode = WatchMode(mode)
        if mode is WatchMode.PUSH and not store.supports_push:
            logger.warning("Store has no change notifications, watching job %s by polling", job_id)
            mode = WatchMode.POLL

        self._store = store
        self.job_id = job_id
        self.mode = mode
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._on_status_change = on_status_change
        self._on_complete = on_complete
        self._on_error = on_error

        self.current_job: Optional[JobRecord] = None
        self.status_history: List[JobStatus] = []
        self._last_status: Optional[JobStatus] = None
        self._session: Optional[ObservationSession] = None
        self._last_session: Optional[ObservationSession] = None

    @property
    def is_watching(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[ObservationSession]:
        return self._session

    @property
    def elapsed(self) -> float:
        session = self._session or self._last_session
        return session.elapsed if session else 0.0

    async def start(self) -> None:
        """Begin observing. A no-op while an observation is already running."""
        if self._session is not None:
            return

        session = ObservationSession()
        self._session = self._last_session = session
        self.current_job = None
        self.status_history = []
        self._last_status = None
        logger.info("Watching job %s (mode: %s)", self.job_id, self.mode.value)

        session.deadline_task = asyncio.create_task(self._deadline(session))

        use_polling = self.mode is WatchMode.POLL
        if not use_polling:
            use_polling = not await self._subscribe(session)

        await self._handle(session, await self._fetch())

        if use_polling and not session.finished:
            session.poll_task = asyncio.create_task(self._poll(session))

    async def stop(self) -> None:
        """Stop observing. Idempotent; no callbacks fire afterwards."""
        session = self._session
        if session is None:
            return
        await self._end(session)

    async def wait(self) -> None:
        """Block until the current observation ends for any reason.

        Waits on the session running at call time, or the most recent one.
        Returns at once if the watcher was never started.
        """
        session = self._session or self._last_session
        if session is None:
            return
        await session.done.wait()

    async def __aenter__(self) -> "JobWatcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _subscribe(self, session: ObservationSession) -> bool:
        queue: "asyncio.Queue[dict]" = asyncio.Queue()
        try:
            session.subscription = await self._store.subscribe(self.job_id, queue.put_nowait)
        except Exception:
            logger.exception("Subscription for job %s failed, falling back to polling", self.job_id)
            return False
        session.push_task = asyncio.create_task(self._consume(session, queue))
        return True

    async def _fetch(self) -> Optional[JobRecord]:
        try:
            return await self._store.get(self.job_id)
        except Exception as exc:
            logger.error("Fetch for job %s failed: %s", self.job_id, exc)
            return None

    async def _poll(self, session: ObservationSession) -> None:
        while not session.finished:
            await asyncio.sleep(self.poll_interval)
            if session.finished:
                break
            await self._handle(session, await self._fetch())

    async def _consume(self, session: ObservationSession, queue: "asyncio.Queue[dict]") -> None:
        while not session.finished:
            row = await queue.get()
            try:
                job = JobRecord.from_row(row)
            except ValidationError:
                logger.exception("Discarding malformed change event for job %s", self.job_id)
                continue
            await self._handle(session, job)

    async def _deadline(self, session: ObservationSession) -> None:
        await asyncio.sleep(max(0.0, self.timeout - session.elapsed))
        if session.finished:
            return
        session.finished = True
        logger.warning("Timed out watching job %s after %.1fs", self.job_id, session.elapsed)
        await self._end(
            session,
            self._on_error,
            WatchFailure(WATCHER_TIMEOUT_MESSAGE, self.current_job, timed_out=True),
        )

    async def _handle(self, session: ObservationSession, job: Optional[JobRecord]) -> None:
        if job is None or session.finished:
            return

        prev = self._last_status
        if prev is not None and _progress_rank(job.status) < _progress_rank(prev):
            logger.debug("Ignoring stale observation %s for job %s", job.status.value, self.job_id)
            return

        self.current_job = job
        changed = job.status != prev
        if changed:
            self.status_history.append(job.status)
            self._last_status = job.status
            logger.info(
                "Job %s status: %s -> %s",
                self.job_id, prev.value if prev else None, job.status.value,
            )

        terminal = job.status in TERMINAL_JOB_STATES
        timed_out = not terminal and session.elapsed > self.timeout
        if terminal or timed_out:
            # Decided synchronously so a concurrent observation cannot fire twice
            session.finished = True

        if changed and prev is not None:
            await self._invoke(self._on_status_change, job, prev)

        if not (terminal or timed_out):
            return

        if job.status is JobStatus.COMPLETED:
            await self._end(session, self._on_complete, job)
        elif job.status is JobStatus.FAILED:
            message = job.error_message or "Job failed without an error message"
            await self._end(session, self._on_error, WatchFailure(message, job))
        else:
            logger.warning("Timed out watching job %s after %.1fs", self.job_id, session.elapsed)
            await self._end(
                session,
                self._on_error,
                WatchFailure(WATCHER_TIMEOUT_MESSAGE, job, timed_out=True),
            )

    async def _end(
        self,
        session: ObservationSession,
        callback: Optional[Callable[..., Any]] = None,
        *args: Any,
    ) -> None:
        """Tear the session down, then run the final callback, then release waiters."""
        if self._session is session:
            self._session = None
        try:
            await session.close()
            await self._invoke(callback, *args)
        finally:
            session.done.set()

    async def _invoke(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Watcher callback failed for job %s", self.job_id)
