"""Dispatch trigger interface."""

from abc import ABC, abstractmethod


class JobTrigger(ABC):
    """Hands a job id to the dispatcher out of band (fire-and-forget).

    Submitting only schedules the attempt; the job's outcome is observed
    through the job store.
    """

    @abstractmethod
    async def submit(self, job_id: str) -> str:
        """Schedule processing for ``job_id``. Returns the job id."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the trigger (e.g., start worker loop)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the trigger gracefully."""
        ...
