"""Job store interface and in-process implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from tryon.jobs.errors import JobNotFoundError
from tryon.jobs.models import JobRecord, JobStatus

logger = logging.getLogger(__name__)

# Receives the raw row of a changed job, exactly as the store would return it.
ChangeCallback = Callable[[Dict[str, Any]], None]


class Subscription(ABC):
    """Handle for a change subscription scoped to one job."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        ...


class JobStore(ABC):
    """Durable job records, keyed by job id. The single source of truth."""

    #: Whether ``subscribe`` is available. Watchers fall back to polling if not.
    supports_push: bool = False

    @abstractmethod
    async def create(self, job: JobRecord) -> JobRecord:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> JobRecord:
        """Return the job or raise JobNotFoundError."""
        ...

    @abstractmethod
    async def update(self, job_id: str, fields: Dict[str, Any]) -> None:
        """Unconditionally write ``fields`` to the job."""
        ...

    @abstractmethod
    async def transition(
        self,
        job_id: str,
        expected: Iterable[JobStatus],
        fields: Dict[str, Any],
    ) -> Optional[JobRecord]:
        """Write ``fields`` only if the job's current status is in ``expected``.

        Returns the updated record, or None when the status precondition did
        not hold (another writer got there first).
        """
        ...

    @abstractmethod
    async def list_for_owner(self, user_id: str, limit: int = 50) -> List[JobRecord]:
        """Jobs owned by ``user_id``, newest first."""
        ...

    async def subscribe(self, job_id: str, callback: ChangeCallback) -> Subscription:
        raise NotImplementedError(f"{type(self).__name__} does not support change notifications")


class _ListenerSubscription(Subscription):
    def __init__(self, store: "InMemoryJobStore", job_id: str, callback: ChangeCallback):
        self._store = store
        self._job_id = job_id
        self._callback = callback
        self.active = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        listeners = self._store._listeners.get(self._job_id, [])
        if self._callback in listeners:
            listeners.remove(self._callback)


class InMemoryJobStore(JobStore):
    """Process-local store for local development and tests.

    Change listeners are invoked synchronously after every write, with the
    row serialized the same way a database change feed would deliver it.
    """

    supports_push = True

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}
        self._listeners: Dict[str, List[ChangeCallback]] = {}

    async def create(self, job: JobRecord) -> JobRecord:
        self._jobs[job.id] = job
        return job

    async def get(self, job_id: str) -> JobRecord:
        return self._require(job_id)

    async def update(self, job_id: str, fields: Dict[str, Any]) -> None:
        job = self._require(job_id)
        self._write(job, fields)

    async def transition(
        self,
        job_id: str,
        expected: Iterable[JobStatus],
        fields: Dict[str, Any],
    ) -> Optional[JobRecord]:
        job = self._require(job_id)
        if job.status not in set(expected):
            return None
        return self._write(job, fields)

    async def list_for_owner(self, user_id: str, limit: int = 50) -> List[JobRecord]:
        jobs = [j for j in self._jobs.values() if j.user_id == user_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    async def subscribe(self, job_id: str, callback: ChangeCallback) -> Subscription:
        self._listeners.setdefault(job_id, []).append(callback)
        return _ListenerSubscription(self, job_id, callback)

    def listener_count(self, job_id: str) -> int:
        return len(self._listeners.get(job_id, []))

    def _require(self, job_id: str) -> JobRecord:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _write(self, job: JobRecord, fields: Dict[str, Any]) -> JobRecord:
        updated = JobRecord.from_row({**job.to_row(), **serialize_fields(fields)})
        self._jobs[job.id] = updated
        row = updated.to_row()
        for callback in list(self._listeners.get(job.id, [])):
            try:
                callback(dict(row))
            except Exception:
                logger.exception("Change listener failed for job %s", job.id)
        return updated


def serialize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Render enum and datetime values the way a JSON row would hold them."""
    out = {}
    for key, value in fields.items():
        if isinstance(value, JobStatus):
            value = value.value
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        out[key] = value
    return out
