"""Job API: submit try-on jobs, trigger dispatch, read and watch status."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from tryon.auth.supabase_auth import AuthUser, verify_jwt
from tryon.jobs.errors import JobNotFoundError
from tryon.jobs.helpers import (
    create_job_payload,
    is_job_stale,
    processing_time_seconds,
    status_message,
)
from tryon.jobs.lifecycle import UI_FLAG_FIELDS
from tryon.jobs.models import JobRecord, JobStatus, TryOnStyle
from tryon.jobs.watcher import JobWatcher, WatchFailure, WatchMode
from tryon.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class JobSubmitRequest(BaseModel):
    product_id: str
    model_id: str
    style: TryOnStyle = TryOnStyle.EDITORIAL
    user_instructions: Optional[str] = None
    ai_model: Optional[str] = None


class JobSubmitResponse(BaseModel):
    job_id: str
    status: str
    message: str


class ProcessJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(default=None, alias="jobId")


class JobFlagsUpdate(BaseModel):
    is_favorite: Optional[bool] = None
    is_public: Optional[bool] = None


def _describe(job: JobRecord, stale_minutes: int) -> Dict[str, Any]:
    response = job.to_wire()
    response["statusMessage"] = status_message(job.status)
    response["processingTime"] = processing_time_seconds(job)
    response["isStale"] = is_job_stale(job, timeout_minutes=stale_minutes)
    return response


async def _load_visible(job_id: str, user: AuthUser, services: Services) -> JobRecord:
    try:
        job = await services.store.get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.user_id != user.id and not job.is_public:
        raise HTTPException(status_code=403, detail="Not allowed to access this job")
    return job


@router.post("/jobs", response_model=JobSubmitResponse)
async def submit_job(
    request: JobSubmitRequest,
    user: AuthUser = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Create a queued job and schedule its processing."""
    job = create_job_payload(
        user_id=user.id,
        product_id=request.product_id,
        model_id=request.model_id,
        style=request.style.value,
        ai_model=request.ai_model,
        user_instructions=request.user_instructions,
    )
    await services.store.create(job)
    await services.trigger.submit(job.id)
    logger.info("Job %s created for user %s", job.id, user.id)
    return JobSubmitResponse(
        job_id=job.id,
        status=JobStatus.QUEUED.value,
        message="Job submitted. Watch GET /api/v1/jobs/{id}/events or poll GET /api/v1/jobs/{id}.",
    )


@router.get("/jobs")
async def list_jobs(
    limit: int = Query(50, ge=1, le=200),
    user: AuthUser = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """The caller's jobs, newest first."""
    jobs = await services.store.list_for_owner(user.id, limit=limit)
    stale_minutes = services.settings.stale_job_minutes
    return {"jobs": [_describe(j, stale_minutes) for j in jobs], "count": len(jobs)}


@router.get("/jobs/{job_id}")
async def get_job_status(
    job_id: str,
    user: AuthUser = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    job = await _load_visible(job_id, user, services)
    return _describe(job, services.settings.stale_job_minutes)


@router.patch("/jobs/{job_id}/flags")
async def update_job_flags(
    job_id: str,
    request: JobFlagsUpdate,
    user: AuthUser = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Toggle favorite / public visibility. Allowed in any job state."""
    job = await _load_visible(job_id, user, services)
    if job.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the owner can change a job")
    fields = {
        k: v for k, v in request.model_dump(exclude_none=True).items() if k in UI_FLAG_FIELDS
    }
    if not fields:
        raise HTTPException(status_code=400, detail="No flags to update")
    await services.store.update(job_id, fields)
    return _describe(await services.store.get(job_id), services.settings.stale_job_minutes)


@router.post("/process-job")
async def process_job(
    request: ProcessJobRequest,
    services: Services = Depends(get_services),
):
    """Run one dispatch attempt for a job.

    The response reports on this dispatch call; the job's own outcome is
    always recorded in the job store. Processing is shielded from request
    cancellation, so a caller that disconnects cannot interrupt the failure
    bookkeeping.
    """
    if not request.job_id:
        raise HTTPException(status_code=400, detail="jobId is required")

    try:
        result = await asyncio.shield(services.dispatcher.process_job(request.job_id))
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    return {
        "success": True,
        "jobId": result.job_id,
        "outcome": result.outcome.value,
        "resultUrl": result.result_url,
        "error": result.error,
        "aiModel": result.ai_model,
        "provider": result.provider,
        "duration": round(result.duration_seconds, 3),
    }


def _sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.get("/jobs/{job_id}/events")
async def watch_job(
    job_id: str,
    mode: Optional[WatchMode] = None,
    timeout: Optional[float] = Query(None, gt=0),
    user: AuthUser = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Stream a job's status transitions as server-sent events.

    Events: ``snapshot`` (first observation), ``status`` (each transition),
    then exactly one of ``completed``, ``failed`` or ``timeout``.
    """
    await _load_visible(job_id, user, services)
    settings = services.settings
    events: "asyncio.Queue[tuple]" = asyncio.Queue()

    def on_status_change(job: JobRecord, previous: JobStatus) -> None:
        events.put_nowait(("status", {"from": previous.value, "to": job.status.value, "job": job.to_wire()}))

    def on_complete(job: JobRecord) -> None:
        events.put_nowait(("completed", job.to_wire()))

    def on_error(failure: WatchFailure) -> None:
        payload = {
            "message": failure.message,
            "job": failure.job.to_wire() if failure.job else None,
        }
        events.put_nowait(("timeout" if failure.timed_out else "failed", payload))

    watcher = JobWatcher(
        services.store,
        job_id,
        mode=mode or WatchMode(settings.watch_mode),
        poll_interval=settings.watch_poll_interval_seconds,
        timeout=timeout or settings.watch_timeout_seconds,
        on_status_change=on_status_change,
        on_complete=on_complete,
        on_error=on_error,
    )

    async def stream() -> AsyncIterator[str]:
        await watcher.start()
        try:
            if watcher.current_job is not None:
                yield _sse("snapshot", watcher.current_job.to_wire())
            while True:
                event, data = await events.get()
                yield _sse(event, data)
                if event in ("completed", "failed", "timeout"):
                    break
        finally:
            await watcher.stop()

    return StreamingResponse(stream(), media_type="text/event-stream")
