"""Job submission: the API-facing producer side of the assembly queue."""

from typing import Any
import uuid

from pydantic import ValidationError
import structlog

from sitegen.contracts.dto import (
    JobDTO,
    JobStatus,
    ProjectSpec,
    QueueStatusDTO,
    SubmitResult,
)
from sitegen.contracts.queues.assembly import AssemblyMessage
from sitegen.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    JobValidationError,
    NotFoundError,
    QueueUnavailableError,
    UnknownModuleError,
)
from sitegen.generator.catalog import ModuleCatalog, get_catalog
from sitegen.logging_config import get_correlation_id
from sitegen.queues import ASSEMBLY_QUEUE, get_queue_counts
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import ProjectStore

logger = structlog.get_logger()


def _duplicate(existing: JobDTO) -> SubmitResult:
    logger.info("job_submission_deduplicated", job_id=existing.id, status=existing.status)
    return SubmitResult(job_id=existing.id, status=existing.status, duplicate=True)


class JobSubmitter:
    """Validates a project spec, records the job and enqueues it."""

    def __init__(
        self,
        store: ProjectStore,
        stream: RedisStreamClient,
        *,
        max_attempts: int = 3,
        catalog: ModuleCatalog | None = None,
    ):
        self.store = store
        self.stream = stream
        self.max_attempts = max_attempts
        self.catalog = catalog or get_catalog()

    def validate(self, payload: dict[str, Any] | ProjectSpec) -> ProjectSpec:
        """Parse and check a raw spec.

        Raises:
            JobValidationError: malformed payload or unknown module names.
        """
        if isinstance(payload, ProjectSpec):
            spec = payload
        else:
            try:
                spec = ProjectSpec.model_validate(payload)
            except ValidationError as e:
                errors = e.errors(include_url=False, include_context=False, include_input=False)
                raise JobValidationError("Invalid project specification", errors=errors) from e

        try:
            self.catalog.resolve_modules(spec.industry, spec.modules)
            self.catalog.validate_admin_modules(spec.admin_modules)
        except UnknownModuleError as e:
            raise JobValidationError(
                str(e), errors=[{"loc": ["modules"], "msg": str(e), "type": "unknown_module"}]
            ) from e
        return spec

    async def submit(self, payload: dict[str, Any] | ProjectSpec) -> SubmitResult:
        """Validate, persist and enqueue a generation job.

        Nothing is written when validation fails. Resubmitting an identical
        spec while an earlier job is queued, running or succeeded returns
        that job instead of creating a new one.

        Raises:
            JobValidationError: the spec was rejected.
            QueueUnavailableError: the job row was written but could not be
                enqueued; the row is marked failed.
        """
        spec = self.validate(payload)
        key = spec.idempotency_key()

        existing = await self.store.find_active_job(key)
        if existing is not None:
            return _duplicate(existing)

        try:
            job = await self.store.create_job(
                job_id=str(uuid.uuid4()),
                idempotency_key=key,
                spec=spec.model_dump(mode="json"),
                business_name=spec.name,
                industry=spec.industry,
                modules=spec.modules,
                max_attempts=self.max_attempts,
                priority=spec.priority,
            )
        except DuplicateJobError:
            # A concurrent identical submission created the job first
            existing = await self.store.find_active_job(key)
            if existing is None:
                raise
            return _duplicate(existing)

        message = AssemblyMessage(job_id=job.id, attempt=1)
        if correlation_id := get_correlation_id():
            message.correlation_id = correlation_id
        try:
            await self.stream.publish_message(ASSEMBLY_QUEUE, message)
        except Exception as e:
            logger.error("job_enqueue_failed", job_id=job.id, error=str(e))
            await self.store.transition_job(
                job.id,
                (JobStatus.QUEUED,),
                JobStatus.FAILED,
                error=f"enqueue failed: {e}",
            )
            raise QueueUnavailableError(f"Could not enqueue job {job.id}: {e}") from e

        logger.info(
            "job_submitted",
            job_id=job.id,
            business_name=spec.name,
            industry=spec.industry,
            modules=spec.modules,
        )
        return SubmitResult(job_id=job.id, status=job.status)

    async def get_status(self, job_id: str) -> JobDTO:
        job = await self.store.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def cancel(self, job_id: str) -> bool:
        """Cancel a queued job. Returns False when the job already left ``queued``."""
        try:
            await self.store.transition_job(job_id, (JobStatus.QUEUED,), JobStatus.CANCELLED)
        except InvalidTransitionError:
            logger.info("job_cancel_rejected", job_id=job_id)
            return False
        logger.info("job_cancelled", job_id=job_id)
        return True

    async def queue_status(self) -> QueueStatusDTO:
        counts = await self.store.count_jobs_by_status()
        try:
            stream_counts = await get_queue_counts(self.stream.redis)
        except Exception as e:
            logger.warning("queue_counts_unavailable", error=str(e))
            stream_counts = {}
        return QueueStatusDTO(counts=counts, **stream_counts)
