"""Helpers for creating and describing try-on jobs."""

import uuid
from datetime import datetime
from typing import Optional

from tryon.jobs.lifecycle import NON_TERMINAL_STATES
from tryon.jobs.models import JobRecord, JobStatus, TryOnStyle, utcnow
from tryon.jobs.versions import CURRENT_PIPELINE_VERSION, CURRENT_PROMPT_VERSION

DEFAULT_USER_INSTRUCTIONS = "Atelier."

_STATUS_MESSAGES = {
    JobStatus.QUEUED: "Waiting in the processing queue",
    JobStatus.PENDING: "Waiting to start",
    JobStatus.PROCESSING: "Processing transformation",
    JobStatus.COMPLETED: "Completed successfully",
    JobStatus.FAILED: "Failed to process",
}


def create_job_payload(
    user_id: str,
    product_id: str,
    model_id: str,
    style: str = TryOnStyle.EDITORIAL.value,
    ai_model: Optional[str] = None,
    user_instructions: Optional[str] = None,
) -> JobRecord:
    """Build a new queued job stamped with the current prompt/pipeline versions.

    ``ai_model`` is a per-job override; leave it empty to use the owner's
    profile preference at dispatch time.
    """
    return JobRecord(
        id=str(uuid.uuid4()),
        user_id=user_id,
        product_id=product_id,
        model_id=model_id,
        style=style,
        user_instructions=user_instructions or DEFAULT_USER_INSTRUCTIONS,
        status=JobStatus.QUEUED,
        ai_model_used=ai_model,
        prompt_version=CURRENT_PROMPT_VERSION,
        pipeline_version=CURRENT_PIPELINE_VERSION,
        is_favorite=False,
        is_public=False,
    )


def processing_time_seconds(job: JobRecord) -> Optional[float]:
    if not job.started_at or not job.completed_at:
        return None
    return (job.completed_at - job.started_at).total_seconds()


def is_job_stale(
    job: JobRecord,
    timeout_minutes: int = 10,
    now: Optional[datetime] = None,
) -> bool:
    """True when a job is still non-terminal long after it was created.

    A dispatcher crash between generation and the final write leaves the job
    stuck; this is how such jobs are detected from outside.
    """
    if job.status not in NON_TERMINAL_STATES:
        return False
    now = now or utcnow()
    elapsed_minutes = (now - job.created_at).total_seconds() / 60
    return elapsed_minutes > timeout_minutes


def status_message(status: JobStatus) -> str:
    try:
        return _STATUS_MESSAGES[JobStatus(status)]
    except ValueError:
        return "Unknown status"
