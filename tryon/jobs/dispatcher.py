"""Transformation dispatcher: runs one try-on job end to end.

One invocation is one attempt. The dispatcher claims the job by moving it from
queued/pending to processing with a conditional write; that write is the
commit point, and an invocation that loses it returns without touching any
external service. Every failure ends in exactly one ``failed`` write attempt
carrying a readable message, conditioned on the state this invocation owns:
``processing`` once it holds the claim, queued/pending before. Nothing is
retried here; a new attempt means a new job.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from tryon.jobs.errors import (
    AssetFetchError,
    CapabilityError,
    EmptyGenerationResultError,
    InvalidStateTransitionError,
    JobError,
    JobNotFoundError,
)
from tryon.jobs.lifecycle import NOT_STARTED_STATES, validate_job_transition
from tryon.jobs.models import JobRecord, JobStatus, utcnow
from tryon.jobs.store import JobStore
from tryon.processing.images import (
    EncodedImage,
    decode_generated_image,
    prepare_for_transport,
)
from tryon.processing.prompt import build_prompt
from tryon.providers.registry import ProviderRegistry
from tryon.storage.assets import AssetFetcher, AssetRef, AssetResolver, AssetWriter
from tryon.storage.profiles import ProfileStore

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # job was already claimed or terminal


@dataclass
class DispatchResult:
    job_id: str
    outcome: DispatchOutcome
    result_url: Optional[str] = None
    error: Optional[str] = None
    ai_model: Optional[str] = None
    provider: Optional[str] = None
    duration_seconds: float = 0.0


def failure_message(exc: BaseException) -> str:
    if isinstance(exc, JobError):
        return str(exc)
    detail = str(exc) or "no details"
    return f"Unexpected error while processing the job ({type(exc).__name__}: {detail})"


class TransformationDispatcher:
    def __init__(
        self,
        store: JobStore,
        resolver: AssetResolver,
        fetcher: AssetFetcher,
        writer: AssetWriter,
        providers: ProviderRegistry,
        profiles: Optional[ProfileStore] = None,
        transport_max_dimension: int = 800,
        transport_jpeg_quality: int = 80,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._resolver = resolver
        self._fetcher = fetcher
        self._writer = writer
        self._providers = providers
        self._profiles = profiles
        self._max_dimension = transport_max_dimension
        self._jpeg_quality = transport_jpeg_quality
        self._clock = clock

    async def process_job(self, job_id: str) -> DispatchResult:
        """Execute a single attempt for ``job_id``.

        JobNotFoundError propagates to the caller; no job exists to update.
        Every other failure is recorded on the job and reported in the result.
        """
        started = time.monotonic()
        logger.info("Processing job %s", job_id)

        try:
            job = await self._store.get(job_id)
        except JobNotFoundError:
            raise
        except Exception as exc:
            message = failure_message(exc)
            logger.exception("Could not load job %s", job_id)
            await self._record_failure(job_id, message, NOT_STARTED_STATES)
            return DispatchResult(
                job_id=job_id,
                outcome=DispatchOutcome.FAILED,
                error=message,
                duration_seconds=time.monotonic() - started,
            )

        try:
            validate_job_transition(job.status, JobStatus.PROCESSING)
        except InvalidStateTransitionError:
            logger.info("Job %s is already %s, skipping", job_id, job.status.value)
            return DispatchResult(job_id=job_id, outcome=DispatchOutcome.SKIPPED)

        ctx = _Attempt(job=job)
        try:
            result = await self._run(ctx)
        except Exception as exc:
            message = failure_message(exc)
            if isinstance(exc, JobError):
                logger.error("Job %s failed: %s", job_id, message)
            else:
                logger.exception("Job %s failed unexpectedly", job_id)
            # Only the invocation holding the claim may fail a processing job
            expected = {JobStatus.PROCESSING} if ctx.claimed else NOT_STARTED_STATES
            await self._record_failure(job_id, message, expected)
            return DispatchResult(
                job_id=job_id,
                outcome=DispatchOutcome.FAILED,
                error=message,
                ai_model=ctx.model,
                provider=ctx.provider,
                duration_seconds=time.monotonic() - started,
            )

        if result is not None:
            result.duration_seconds = time.monotonic() - started
            logger.info(
                "Job %s completed in %.1fs with %s", job_id, result.duration_seconds, result.ai_model
            )
            return result
        return DispatchResult(job_id=job_id, outcome=DispatchOutcome.SKIPPED)

    async def _run(self, ctx: "_Attempt") -> Optional[DispatchResult]:
        job = ctx.job

        # 1. Input references
        product_ref = await self._resolver.resolve(job.product_id)
        subject_ref = await self._resolver.resolve(job.model_id)

        # 2. Claim; must precede any external call
        claimed = await self._store.transition(
            job.id,
            {JobStatus.QUEUED, JobStatus.PENDING},
            {"status": JobStatus.PROCESSING, "started_at": utcnow()},
        )
        if claimed is None:
            logger.info("Job %s was claimed by another invocation", job.id)
            return None
        ctx.job = job = claimed
        ctx.claimed = True
        logger.info("Job %s is processing", job.id)

        # 3. Model selection and capability check
        selector = job.ai_model_used or await self._preferred_model(job.user_id)
        config = self._providers.get_model_config(selector or self._providers.default_model)
        ctx.model = config.model
        if not config.can_generate_images:
            raise CapabilityError(config.model, config.display_name)
        provider = self._providers.get_provider(config.model)
        ctx.provider = provider.name
        logger.info("Job %s using %s via %s", job.id, config.model, provider.name)

        # 4. Inputs into transport form
        subject_image = await self._materialize(subject_ref, "model")
        garment_image = await self._materialize(product_ref, "product")

        # 5. Instruction text
        prompt = build_prompt(job.style, job.user_instructions)

        # 6. Generation
        raw = await provider.generate_image(subject_image, garment_image, prompt, config.model)
        generated = decode_generated_image(raw)
        if not generated.data:
            raise EmptyGenerationResultError(provider.name)
        logger.info("Job %s generated %d bytes", job.id, len(generated.data))

        # 7-8. Persist and resolve URL
        path = f"{job.user_id}/results/{int(self._clock() * 1000)}_result.{generated.extension}"
        stored = await self._writer.store(job.user_id, path, generated.data, generated.mime_type)
        result_url = await self._writer.public_url(stored.path)

        # 9. Complete
        completed = await self._store.transition(
            job.id,
            {JobStatus.PROCESSING},
            {
                "status": JobStatus.COMPLETED,
                "result_public_url": result_url,
                "ai_model_used": config.model,
                "completed_at": utcnow(),
            },
        )
        if completed is None:
            raise JobError(f"Job {job.id} left the processing state before it could be completed")

        return DispatchResult(
            job_id=job.id,
            outcome=DispatchOutcome.COMPLETED,
            result_url=result_url,
            ai_model=config.model,
            provider=provider.name,
        )

    async def _preferred_model(self, user_id: str) -> Optional[str]:
        if self._profiles is None:
            return None
        try:
            return await self._profiles.get_preferred_model(user_id)
        except Exception:
            logger.warning("Could not read model preference for user %s", user_id, exc_info=True)
            return None

    async def _materialize(self, ref: AssetRef, label: str) -> EncodedImage:
        raw = await self._fetcher.fetch(ref.retrieval_url, label=label)
        try:
            return prepare_for_transport(raw, self._max_dimension, self._jpeg_quality)
        except ValueError as exc:
            raise AssetFetchError(label, str(exc))

    async def _record_failure(
        self,
        job_id: str,
        message: str,
        expected: Iterable[JobStatus],
    ) -> None:
        try:
            updated = await self._store.transition(
                job_id,
                expected,
                {
                    "status": JobStatus.FAILED,
                    "error_message": message,
                    "completed_at": utcnow(),
                },
            )
        except Exception:
            logger.exception("Could not record failure for job %s", job_id)
            raise
        if updated is None:
            logger.warning(
                "Policy violation: job %s is not in a state this attempt may fail, failure not recorded",
                job_id,
            )


@dataclass
class _Attempt:
    job: JobRecord
    model: Optional[str] = None
    provider: Optional[str] = None
    claimed: bool = False
