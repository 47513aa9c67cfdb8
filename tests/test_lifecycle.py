import itertools
import logging

import pytest

from tryon.jobs.errors import InvalidStateTransitionError
from tryon.jobs.lifecycle import (
    NON_TERMINAL_STATES,
    can_transition_job,
    is_job_terminal,
    validate_job_transition,
)
from tryon.jobs.models import JobStatus

LEGAL = {
    (JobStatus.QUEUED, JobStatus.PROCESSING),
    (JobStatus.QUEUED, JobStatus.FAILED),
    (JobStatus.PENDING, JobStatus.PROCESSING),
    (JobStatus.PENDING, JobStatus.FAILED),
    (JobStatus.PROCESSING, JobStatus.COMPLETED),
    (JobStatus.PROCESSING, JobStatus.FAILED),
}
ILLEGAL = sorted(
    (pair for pair in itertools.product(JobStatus, JobStatus) if pair not in LEGAL),
    key=lambda p: (p[0].value, p[1].value),
)


@pytest.mark.parametrize("current,target", sorted(LEGAL, key=lambda p: (p[0].value, p[1].value)))
def test_legal_transitions_are_accepted(current, target):
    assert can_transition_job(current, target)
    validate_job_transition(current, target)


@pytest.mark.parametrize("current,target", ILLEGAL, ids=[f"{a.value}->{b.value}" for a, b in ILLEGAL])
def test_illegal_transitions_are_rejected(current, target):
    assert not can_transition_job(current, target)
    with pytest.raises(InvalidStateTransitionError) as exc_info:
        validate_job_transition(current, target)
    assert exc_info.value.current_state == current.value
    assert exc_info.value.target_state == target.value


def test_rejected_transition_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="tryon.jobs.lifecycle"):
        with pytest.raises(InvalidStateTransitionError):
            validate_job_transition(JobStatus.COMPLETED, JobStatus.PROCESSING)
    assert "Policy violation" in caplog.text
    assert "completed -> processing" in caplog.text


def test_terminal_states():
    assert is_job_terminal(JobStatus.COMPLETED)
    assert is_job_terminal(JobStatus.FAILED)
    assert not is_job_terminal("queued")
    assert JobStatus.PROCESSING in NON_TERMINAL_STATES
