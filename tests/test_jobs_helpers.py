from datetime import timedelta

import pytest

from tryon.jobs.helpers import (
    DEFAULT_USER_INSTRUCTIONS,
    create_job_payload,
    is_job_stale,
    processing_time_seconds,
    status_message,
)
from tryon.jobs.models import JobRecord, JobStatus, utcnow
from tryon.jobs.versions import CURRENT_PIPELINE_VERSION, CURRENT_PROMPT_VERSION
from tryon.processing.prompt import STYLE_PRESETS, build_prompt, style_preset


def test_create_job_payload_defaults():
    job = create_job_payload("user-1", "product-1", "model-1")

    assert job.status is JobStatus.QUEUED
    assert job.style == "editorial"
    assert job.user_instructions == DEFAULT_USER_INSTRUCTIONS
    assert job.prompt_version == CURRENT_PROMPT_VERSION
    assert job.pipeline_version == CURRENT_PIPELINE_VERSION
    assert job.ai_model_used is None
    assert not job.is_favorite and not job.is_public
    assert job.started_at is None and job.completed_at is None
    assert job.id != create_job_payload("user-1", "product-1", "model-1").id


def test_wire_shape_uses_camel_case():
    wire = create_job_payload("user-1", "product-1", "model-1", ai_model="gemini-2.0-flash-exp").to_wire()

    assert wire["userId"] == "user-1"
    assert wire["aiModelUsed"] == "gemini-2.0-flash-exp"
    assert wire["resultImage"] is None
    assert wire["isFavorite"] is False
    assert wire["status"] == "queued"
    assert "createdAt" in wire


def test_from_row_tolerates_null_flags():
    row = create_job_payload("user-1", "p", "m").to_row()
    row["is_favorite"] = None
    row["is_public"] = None

    job = JobRecord.from_row(row)

    assert job.is_favorite is False
    assert job.is_public is False


def test_processing_time():
    job = create_job_payload("user-1", "p", "m")
    assert processing_time_seconds(job) is None

    started = utcnow()
    job = job.model_copy(update={"started_at": started, "completed_at": started + timedelta(seconds=12.5)})
    assert processing_time_seconds(job) == 12.5


def test_stale_detection():
    job = create_job_payload("user-1", "p", "m")
    later = job.created_at + timedelta(minutes=11)

    assert not is_job_stale(job)
    assert is_job_stale(job, now=later)
    assert not is_job_stale(job, timeout_minutes=15, now=later)

    finished = job.model_copy(update={"status": JobStatus.COMPLETED})
    assert not is_job_stale(finished, now=later)


@pytest.mark.parametrize(
    "status,message",
    [
        ("queued", "Waiting in the processing queue"),
        (JobStatus.PROCESSING, "Processing transformation"),
        (JobStatus.FAILED, "Failed to process"),
        ("archived", "Unknown status"),
    ],
)
def test_status_message(status, message):
    assert status_message(status) == message


def test_editorial_preset_appears_verbatim_in_prompt():
    prompt = build_prompt("editorial", None)
    assert STYLE_PRESETS["editorial"] in prompt
    assert "CLIENT NOTES" not in prompt


def test_unknown_style_uses_editorial_preset():
    assert style_preset("baroque") == STYLE_PRESETS["editorial"]
    assert style_preset(None) == STYLE_PRESETS["editorial"]


def test_user_instructions_are_added_as_client_notes():
    prompt = build_prompt("seda", "  keep the earrings  ")
    assert STYLE_PRESETS["seda"] in prompt
    assert "6. CLIENT NOTES: keep the earrings\n" in prompt


def test_prompt_is_deterministic():
    assert build_prompt("casual", "x") == build_prompt("casual", "x")
