"""Assembly worker: claims generation jobs and turns them into project trees.

Job lifecycle driven here::

    queued -> running -> succeeded
                      -> queued  (attempts left, re-published after a backoff)
                      -> failed  (attempts exhausted)
"""

import time
import uuid

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
import structlog

from sitegen.contracts.dto import (
    GeneratedProjectDTO,
    JobDTO,
    JobStatus,
    ProjectSpec,
    ProjectStatus,
)
from sitegen.contracts.queues.assembly import AssemblyMessage, AssemblyResult
from sitegen.contracts.queues.deploy import DeployMessage
from sitegen.errors import BuildError, InvalidTransitionError, NotFoundError, SlugTakenError
from sitegen.generator.assembler import ProjectAssembler
from sitegen.generator.build import BuildRunner
from sitegen.logging_config import log_context
from sitegen.naming import slugify, unique_slug
from sitegen.queues import ASSEMBLY_RESULTS, DEPLOY_QUEUE, schedule_retry
from sitegen.redis_client import RedisStreamClient, StreamMessage
from sitegen.storage import ProjectStore

logger = structlog.get_logger()

# Store failures that leave the message un-acked for redelivery
STORE_ERRORS = (SQLAlchemyError, OSError)


def retry_delay(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... capped at ``max_seconds``."""
    return min(base_seconds * 2 ** (attempt - 1), max_seconds)


def describe_error(exc: BaseException) -> str:
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class AssemblyWorker:
    def __init__(
        self,
        store: ProjectStore,
        stream: RedisStreamClient,
        assembler: ProjectAssembler,
        builder: BuildRunner,
        *,
        base_domain: str,
        retry_base_delay: float = 5.0,
        retry_max_delay: float = 300.0,
    ):
        self.store = store
        self.stream = stream
        self.assembler = assembler
        self.builder = builder
        self.base_domain = base_domain
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay

    async def handle(self, message: StreamMessage, reclaimed: bool = False) -> bool:
        """Stream handler. Returns True when the message may be acknowledged."""
        try:
            assembly_message = AssemblyMessage.model_validate(message.data)
        except ValidationError as e:
            logger.error("invalid_assembly_message", message_id=message.message_id, error=str(e))
            return True
        return await self.process(assembly_message, reclaimed=reclaimed)

    async def process(self, message: AssemblyMessage, reclaimed: bool = False) -> bool:
        """Run one attempt of a job.

        Returns:
            False only when the store was unreachable and the message should be
            redelivered; True otherwise.
        """
        with log_context(job_id=message.job_id, correlation_id=message.correlation_id):
            try:
                return await self._process(message, reclaimed)
            except STORE_ERRORS as e:
                logger.error(
                    "job_store_unavailable",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

    async def _process(self, message: AssemblyMessage, reclaimed: bool) -> bool:
        job = await self._claim(message, reclaimed)
        if job is None:
            return True

        started = time.monotonic()
        project_id: str | None = job.project_id
        try:
            spec = ProjectSpec.model_validate(job.spec)
            project = await self._ensure_project(job, spec)
            project_id = project.id

            async def report(percent: int) -> None:
                await self.store.update_job(job.id, progress=percent)

            output = await self.assembler.assemble(
                job.id, spec, slug=project.slug, on_progress=report
            )
            await self.store.update_project(
                project_id,
                output_path=str(output.project_dir),
                frontend_path=str(output.frontend_dir),
                backend_path=str(output.backend_dir),
                admin_path=str(output.admin_dir) if output.admin_dir else None,
                api_tokens_used=output.tokens_used,
                api_cost=round(output.total_cost, 4),
                pages_generated=output.pages_generated,
                metadata={"generation_errors": output.errors},
            )
            await self.store.update_job(job.id, progress=70, output_path=str(output.project_dir))

            build = await self.builder.run(output.app_dirs)
            if not build.skipped:
                await self.store.update_project(project_id, status=ProjectStatus.BUILD_PASSED)
            await self.store.update_job(job.id, progress=95)
        except SQLAlchemyError:
            raise
        except Exception as e:
            error = describe_error(e)
            logger.error(
                "job_attempt_failed",
                attempt=job.attempts,
                max_attempts=job.max_attempts,
                error=error,
                error_type=type(e).__name__,
            )
            if project_id is not None and isinstance(e, BuildError):
                await self.store.update_project(
                    project_id,
                    status=ProjectStatus.BUILD_FAILED,
                    metadata={"build_error": e.output or str(e)},
                )
            await self._fail_attempt(job, message, error, project_id, started)
            return True

        try:
            await self.store.transition_job(
                job.id,
                (JobStatus.RUNNING,),
                JobStatus.SUCCEEDED,
                progress=100,
                error=None,
                output_path=str(output.project_dir),
            )
        except InvalidTransitionError:
            # Another consumer took the job over while this attempt ran
            current = await self.store.get_job(job.id)
            logger.warning(
                "job_success_lost_race",
                project_id=project_id,
                status=current.status if current else None,
            )
            return True
        await self.store.update_project(
            project_id,
            status=ProjectStatus.COMPLETED,
            metadata={"build": {"skipped": build.skipped, "steps": len(build.steps)}},
        )
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "job_succeeded",
            project_id=project_id,
            attempt=job.attempts,
            duration_ms=duration_ms,
            cost=round(output.total_cost, 6),
        )

        await self._publish_result(
            AssemblyResult(
                request_id=message.request_id,
                status="success",
                job_id=job.id,
                project_id=project_id,
                output_path=str(output.project_dir),
                pages_generated=output.pages_generated,
                total_cost=output.total_cost,
                duration_ms=duration_ms,
            )
        )
        if spec.auto_deploy:
            await self._request_deploy(project_id, job.id, message.correlation_id)
        return True

    async def _claim(self, message: AssemblyMessage, reclaimed: bool) -> JobDTO | None:
        try:
            job = await self.store.transition_job(
                message.job_id,
                (JobStatus.QUEUED,),
                JobStatus.RUNNING,
                increment_attempts=True,
                progress=5,
                error=None,
            )
        except NotFoundError:
            logger.warning("job_not_found")
            return None
        except InvalidTransitionError:
            current = await self.store.get_job(message.job_id)
            if reclaimed and current is not None and current.status == JobStatus.RUNNING:
                # The consumer that owned this attempt died mid-run
                logger.warning("job_attempt_abandoned", attempt=current.attempts)
                await self._fail_attempt(
                    current,
                    message,
                    f"worker stopped during attempt {current.attempts}",
                    current.project_id,
                    time.monotonic(),
                )
            else:
                logger.info(
                    "job_claim_skipped",
                    status=current.status if current else None,
                    reclaimed=reclaimed,
                )
            return None

        logger.info("job_claimed", attempt=job.attempts, max_attempts=job.max_attempts)
        return job

    async def _ensure_project(self, job: JobDTO, spec: ProjectSpec) -> GeneratedProjectDTO:
        if job.project_id:
            existing = await self.store.get_project(job.project_id)
            if existing is not None:
                return await self.store.update_project(existing.id, status=ProjectStatus.BUILDING)

        project_id = str(uuid.uuid4())
        base = slugify(spec.name)
        try:
            project = await self._create_project(job, spec, project_id, base)
        except SlugTakenError:
            slug = unique_slug(base, project_id)
            logger.info("project_slug_taken", slug=base, fallback=slug)
            project = await self._create_project(job, spec, project_id, slug)
        await self.store.update_job(job.id, project_id=project.id)
        logger.info("project_created", project_id=project.id, slug=project.slug)
        return project

    async def _create_project(
        self, job: JobDTO, spec: ProjectSpec, project_id: str, slug: str
    ) -> GeneratedProjectDTO:
        resolved = self.assembler.catalog.resolve_modules(spec.industry, spec.modules)
        return await self.store.create_project(
            project_id=project_id,
            name=spec.name,
            slug=slug,
            industry=spec.industry,
            modules=[m.name for m in resolved],
            status=ProjectStatus.BUILDING,
            domain=f"{slug}.{self.base_domain}",
            metadata={"job_id": job.id, "admin_tier": spec.admin_tier.value},
        )

    async def _fail_attempt(
        self,
        job: JobDTO,
        message: AssemblyMessage,
        error: str,
        project_id: str | None,
        started: float,
    ) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        will_retry = job.attempts < job.max_attempts

        if will_retry:
            await self.store.transition_job(
                job.id, (JobStatus.RUNNING,), JobStatus.QUEUED, error=error, progress=0
            )
            delay = retry_delay(job.attempts, self.retry_base_delay, self.retry_max_delay)
            retry_message = AssemblyMessage(
                job_id=job.id,
                attempt=job.attempts + 1,
                correlation_id=message.correlation_id,
            )
            await schedule_retry(self.stream.redis, retry_message, delay)
            logger.warning(
                "job_retry_scheduled",
                attempt=job.attempts,
                next_attempt=job.attempts + 1,
                delay_seconds=delay,
            )
        else:
            await self.store.transition_job(
                job.id, (JobStatus.RUNNING,), JobStatus.FAILED, error=error
            )
            if project_id is not None:
                await self.store.update_project(
                    project_id, status=ProjectStatus.FAILED, metadata={"error": error}
                )
            logger.error("job_failed", attempts=job.attempts, error=error)

        await self._publish_result(
            AssemblyResult(
                request_id=message.request_id,
                status="failed",
                error=error,
                job_id=job.id,
                project_id=project_id,
                will_retry=will_retry,
                duration_ms=duration_ms,
            )
        )

    async def _publish_result(self, result: AssemblyResult) -> None:
        try:
            await self.stream.publish(ASSEMBLY_RESULTS, result.model_dump(mode="json"))
        except Exception as e:
            logger.warning("assembly_result_publish_failed", error=str(e))

    async def _request_deploy(self, project_id: str, job_id: str, correlation_id: str) -> None:
        try:
            await self.stream.publish_message(
                DEPLOY_QUEUE,
                DeployMessage(project_id=project_id, job_id=job_id, correlation_id=correlation_id),
            )
            logger.info("deploy_requested", project_id=project_id)
        except Exception as e:
            logger.error("deploy_request_failed", project_id=project_id, error=str(e))
