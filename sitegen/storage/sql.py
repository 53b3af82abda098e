"""SQLAlchemy-backed store (PostgreSQL in production, SQLite in tests)."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
import structlog

from sitegen.contracts.dto import (
    DeploymentDTO,
    GeneratedProjectDTO,
    JobDTO,
    JobStatus,
    ProjectStatus,
)
from sitegen.database import Database
from sitegen.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    NotFoundError,
    SlugTakenError,
)
from sitegen.models import Deployment, GeneratedProject, GenerationJob

from .base import ACTIVE_JOB_STATUSES, TERMINAL_JOB_STATUSES, ProjectStore

logger = structlog.get_logger()


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


class SqlProjectStore(ProjectStore):
    def __init__(self, db: Database):
        self.db = db

    # Jobs

    async def create_job(
        self,
        *,
        job_id: str,
        idempotency_key: str,
        spec: dict[str, Any],
        business_name: str,
        industry: str,
        modules: list[str],
        max_attempts: int,
        priority: int = 0,
    ) -> JobDTO:
        now = datetime.now(UTC)
        job = GenerationJob(
            id=job_id,
            idempotency_key=idempotency_key,
            spec=spec,
            business_name=business_name,
            industry=industry,
            modules=modules,
            status=JobStatus.QUEUED.value,
            attempts=0,
            max_attempts=max_attempts,
            progress=0,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.session() as session:
                session.add(job)
                await session.flush()
                return JobDTO.model_validate(job)
        except IntegrityError as e:
            raise DuplicateJobError(idempotency_key) from e

    async def get_job(self, job_id: str) -> JobDTO | None:
        async with self.db.session() as session:
            job = await session.get(GenerationJob, job_id)
            return JobDTO.model_validate(job) if job else None

    async def find_active_job(self, idempotency_key: str) -> JobDTO | None:
        stmt = (
            select(GenerationJob)
            .where(
                GenerationJob.idempotency_key == idempotency_key,
                GenerationJob.status.in_([s.value for s in ACTIVE_JOB_STATUSES]),
            )
            .order_by(GenerationJob.created_at.desc())
            .limit(1)
        )
        async with self.db.session() as session:
            job = (await session.execute(stmt)).scalar_one_or_none()
            return JobDTO.model_validate(job) if job else None

    async def transition_job(
        self,
        job_id: str,
        expected: tuple[JobStatus, ...],
        target: JobStatus,
        *,
        increment_attempts: bool = False,
        **fields: Any,
    ) -> JobDTO:
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "status": target.value,
            "updated_at": now,
            **_column_values(fields),
        }
        if target == JobStatus.RUNNING:
            values.setdefault("started_at", now)
        if target in TERMINAL_JOB_STATUSES:
            values.setdefault("finished_at", now)
        if increment_attempts:
            values["attempts"] = GenerationJob.attempts + 1

        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status.in_([s.value for s in expected]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                current = await session.get(GenerationJob, job_id)
                if current is None:
                    raise NotFoundError(f"Job {job_id} not found")
                raise InvalidTransitionError(
                    job_id, tuple(s.value for s in expected), target.value
                )
            job = await session.get(GenerationJob, job_id, populate_existing=True)
            return JobDTO.model_validate(job)

    async def update_job(self, job_id: str, **fields: Any) -> JobDTO:
        async with self.db.session() as session:
            job = await session.get(GenerationJob, job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            for key, value in _column_values(fields).items():
                setattr(job, key, value)
            job.updated_at = datetime.now(UTC)
            await session.flush()
            return JobDTO.model_validate(job)

    async def count_jobs_by_status(self) -> dict[str, int]:
        stmt = select(GenerationJob.status, func.count()).group_by(GenerationJob.status)
        async with self.db.session() as session:
            rows = (await session.execute(stmt)).all()
        counts = {status.value: 0 for status in JobStatus}
        for status, count in rows:
            counts[status] = count
        return counts

    # Projects

    async def create_project(self, *, project_id: str, **fields: Any) -> GeneratedProjectDTO:
        now = datetime.now(UTC)
        meta = fields.pop("metadata", None) or {}
        project = GeneratedProject(
            id=project_id, meta=meta, created_at=now, updated_at=now, **_column_values(fields)
        )
        project.api_tokens_used = project.api_tokens_used or 0
        project.pages_generated = project.pages_generated or 0
        try:
            async with self.db.session() as session:
                session.add(project)
                await session.flush()
                await session.refresh(project)
                return GeneratedProjectDTO.model_validate(project)
        except IntegrityError as e:
            raise SlugTakenError(f"Slug {project.slug!r} is taken") from e

    async def get_project(self, project_id: str) -> GeneratedProjectDTO | None:
        async with self.db.session() as session:
            project = await session.get(GeneratedProject, project_id)
            return GeneratedProjectDTO.model_validate(project) if project else None

    async def update_project(
        self,
        project_id: str,
        *,
        metadata: dict[str, Any] | None = None,
        **fields: Any,
    ) -> GeneratedProjectDTO:
        async with self.db.session() as session:
            project = await session.get(GeneratedProject, project_id)
            if project is None:
                raise NotFoundError(f"Project {project_id} not found")
            for key, value in _column_values(fields).items():
                setattr(project, key, value)
            if metadata:
                # reassign so the JSON column is flagged dirty
                project.meta = {**(project.meta or {}), **metadata}
            project.updated_at = datetime.now(UTC)
            await session.flush()
            await session.refresh(project)
            return GeneratedProjectDTO.model_validate(project)

    async def list_projects(
        self,
        *,
        status: ProjectStatus | None = None,
        missing_urls: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[GeneratedProjectDTO]:
        stmt = select(GeneratedProject)
        if status is not None:
            stmt = stmt.where(GeneratedProject.status == status.value)
        if missing_urls:
            stmt = stmt.where(
                or_(GeneratedProject.frontend_url.is_(None), GeneratedProject.frontend_url == "")
            )
        stmt = stmt.order_by(GeneratedProject.created_at.desc()).limit(limit).offset(offset)
        async with self.db.session() as session:
            projects = (await session.execute(stmt)).scalars().all()
            return [GeneratedProjectDTO.model_validate(p) for p in projects]

    async def delete_project(self, project_id: str) -> bool:
        async with self.db.session() as session:
            await session.execute(delete(Deployment).where(Deployment.project_id == project_id))
            await session.execute(
                update(GenerationJob)
                .where(GenerationJob.project_id == project_id)
                .values(project_id=None)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(
                delete(GeneratedProject).where(GeneratedProject.id == project_id)
            )
            deleted = result.rowcount > 0
        if deleted:
            logger.info("project_row_deleted", project_id=project_id)
        return deleted

    # Deployments

    async def create_deployment(
        self, *, deployment_id: str, project_id: str, platform: str
    ) -> DeploymentDTO:
        now = datetime.now(UTC)
        deployment = Deployment(
            id=deployment_id,
            project_id=project_id,
            platform=platform,
            status="pending",
            urls={},
            steps=[],
            created_at=now,
            updated_at=now,
        )
        async with self.db.session() as session:
            session.add(deployment)
            await session.flush()
            return DeploymentDTO.model_validate(deployment)

    async def update_deployment(self, deployment_id: str, **fields: Any) -> DeploymentDTO:
        async with self.db.session() as session:
            deployment = await session.get(Deployment, deployment_id)
            if deployment is None:
                raise NotFoundError(f"Deployment {deployment_id} not found")
            for key, value in _column_values(fields).items():
                setattr(deployment, key, value)
            deployment.updated_at = datetime.now(UTC)
            await session.flush()
            return DeploymentDTO.model_validate(deployment)

    async def list_deployments(self, project_id: str) -> list[DeploymentDTO]:
        stmt = (
            select(Deployment)
            .where(Deployment.project_id == project_id)
            .order_by(Deployment.created_at.desc())
        )
        async with self.db.session() as session:
            deployments = (await session.execute(stmt)).scalars().all()
            return [DeploymentDTO.model_validate(d) for d in deployments]
