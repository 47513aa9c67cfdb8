"""
State transition validation for try-on jobs.

Job lifecycle: QUEUED | PENDING -> PROCESSING -> COMPLETED | FAILED
A job that has not started may also fail directly.

INVARIANT: Terminal job states (COMPLETED, FAILED) are immutable apart from the
UI-only flags. No observation, poll or duplicate dispatch may move a job out
of a terminal state.
"""

import logging
from typing import Dict, FrozenSet

from tryon.jobs.errors import InvalidStateTransitionError
from tryon.jobs.models import JobStatus

logger = logging.getLogger(__name__)


TERMINAL_JOB_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.FAILED,
})

# Queued and pending are synonyms: neither is distinguished at read time.
NOT_STARTED_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.QUEUED,
    JobStatus.PENDING,
})

NON_TERMINAL_STATES: FrozenSet[JobStatus] = NOT_STARTED_STATES | {JobStatus.PROCESSING}

_JOB_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

# Columns that may change after a job is terminal.
UI_FLAG_FIELDS: FrozenSet[str] = frozenset({"is_favorite", "is_public"})


def is_job_terminal(status: JobStatus) -> bool:
    return JobStatus(status) in TERMINAL_JOB_STATES


def can_transition_job(current: JobStatus, target: JobStatus) -> bool:
    """Return True only for transitions listed in the lifecycle table."""
    return JobStatus(target) in _JOB_TRANSITIONS.get(JobStatus(current), frozenset())


def validate_job_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise InvalidStateTransitionError (and log it) for an illegal transition."""
    if not can_transition_job(current, target):
        logger.warning(
            "Policy violation: rejected job transition %s -> %s",
            JobStatus(current).value,
            JobStatus(target).value,
        )
        raise InvalidStateTransitionError(JobStatus(current).value, JobStatus(target).value)
