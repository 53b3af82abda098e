"""In-process store used by tests and local dry runs."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sitegen.contracts.dto import (
    DeploymentDTO,
    DeploymentStatus,
    GeneratedProjectDTO,
    JobDTO,
    JobStatus,
    ProjectStatus,
)
from sitegen.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    NotFoundError,
    SlugTakenError,
)

from .base import ACTIVE_JOB_STATUSES, TERMINAL_JOB_STATUSES, ProjectStore


class InMemoryProjectStore(ProjectStore):
    def __init__(self) -> None:
        self.jobs: dict[str, JobDTO] = {}
        self.projects: dict[str, GeneratedProjectDTO] = {}
        self.deployments: dict[str, DeploymentDTO] = {}
        self._idempotency_keys: dict[str, str] = {}
        self._lock = asyncio.Lock()

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
        job = JobDTO(
            id=job_id,
            status=JobStatus.QUEUED,
            business_name=business_name,
            industry=industry,
            modules=list(modules),
            max_attempts=max_attempts,
            priority=priority,
            spec=dict(spec),
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            if self._active_job(idempotency_key) is not None:
                raise DuplicateJobError(idempotency_key)
            self.jobs[job_id] = job
            self._idempotency_keys[job_id] = idempotency_key
        return job

    async def get_job(self, job_id: str) -> JobDTO | None:
        return self.jobs.get(job_id)

    async def find_active_job(self, idempotency_key: str) -> JobDTO | None:
        return self._active_job(idempotency_key)

    def _active_job(self, idempotency_key: str) -> JobDTO | None:
        matches = [
            job
            for job_id, job in self.jobs.items()
            if self._idempotency_keys.get(job_id) == idempotency_key
            and job.status in ACTIVE_JOB_STATUSES
        ]
        if not matches:
            return None
        return max(matches, key=lambda job: job.created_at)

    async def transition_job(
        self,
        job_id: str,
        expected: tuple[JobStatus, ...],
        target: JobStatus,
        *,
        increment_attempts: bool = False,
        **fields: Any,
    ) -> JobDTO:
        async with self._lock:
            job = self.jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            if job.status not in expected:
                raise InvalidTransitionError(
                    job_id, tuple(s.value for s in expected), target.value
                )
            now = datetime.now(UTC)
            update = {"status": target, "updated_at": now, **fields}
            if target == JobStatus.RUNNING:
                update.setdefault("started_at", now)
            if target in TERMINAL_JOB_STATUSES:
                update.setdefault("finished_at", now)
            if increment_attempts:
                update["attempts"] = job.attempts + 1
            job = job.model_copy(update=update)
            self.jobs[job_id] = job
            return job

    async def update_job(self, job_id: str, **fields: Any) -> JobDTO:
        async with self._lock:
            job = self.jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            job = job.model_copy(update={**fields, "updated_at": datetime.now(UTC)})
            self.jobs[job_id] = job
            return job

    async def count_jobs_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        for job in self.jobs.values():
            counts[job.status.value] += 1
        return counts

    async def create_project(self, *, project_id: str, **fields: Any) -> GeneratedProjectDTO:
        now = datetime.now(UTC)
        meta = fields.pop("metadata", None) or {}
        fields.setdefault("status", ProjectStatus.BUILDING)
        project = GeneratedProjectDTO.model_validate(
            {"id": project_id, "meta": dict(meta), "created_at": now, "updated_at": now, **fields}
        )
        async with self._lock:
            if any(p.slug == project.slug for p in self.projects.values()):
                raise SlugTakenError(f"Slug {project.slug!r} is taken")
            self.projects[project_id] = project
        return project

    async def get_project(self, project_id: str) -> GeneratedProjectDTO | None:
        return self.projects.get(project_id)

    async def update_project(
        self,
        project_id: str,
        *,
        metadata: dict[str, Any] | None = None,
        **fields: Any,
    ) -> GeneratedProjectDTO:
        async with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                raise NotFoundError(f"Project {project_id} not found")
            update = {**fields, "updated_at": datetime.now(UTC)}
            if "status" in update:
                update["status"] = ProjectStatus(update["status"])
            if "api_cost" in update:
                update["api_cost"] = Decimal(str(update["api_cost"]))
            if metadata:
                update["metadata"] = {**project.metadata, **metadata}
            project = project.model_copy(update=update)
            self.projects[project_id] = project
            return project

    async def list_projects(
        self,
        *,
        status: ProjectStatus | None = None,
        missing_urls: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[GeneratedProjectDTO]:
        projects = [
            p
            for p in self.projects.values()
            if (status is None or p.status == status) and (not missing_urls or not p.frontend_url)
        ]
        projects.sort(key=lambda p: p.created_at, reverse=True)
        return projects[offset : offset + limit]

    async def delete_project(self, project_id: str) -> bool:
        async with self._lock:
            if self.projects.pop(project_id, None) is None:
                return False
            for deployment_id in [
                d.id for d in self.deployments.values() if d.project_id == project_id
            ]:
                del self.deployments[deployment_id]
            for job_id, job in self.jobs.items():
                if job.project_id == project_id:
                    self.jobs[job_id] = job.model_copy(update={"project_id": None})
            return True

    async def create_deployment(
        self, *, deployment_id: str, project_id: str, platform: str
    ) -> DeploymentDTO:
        now = datetime.now(UTC)
        deployment = DeploymentDTO(
            id=deployment_id,
            project_id=project_id,
            platform=platform,
            status=DeploymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self.deployments[deployment_id] = deployment
        return deployment

    async def update_deployment(self, deployment_id: str, **fields: Any) -> DeploymentDTO:
        async with self._lock:
            deployment = self.deployments.get(deployment_id)
            if deployment is None:
                raise NotFoundError(f"Deployment {deployment_id} not found")
            update = {**fields, "updated_at": datetime.now(UTC)}
            if "status" in update:
                update["status"] = DeploymentStatus(update["status"])
            deployment = deployment.model_copy(update=update)
            self.deployments[deployment_id] = deployment
            return deployment

    async def list_deployments(self, project_id: str) -> list[DeploymentDTO]:
        deployments = [d for d in self.deployments.values() if d.project_id == project_id]
        deployments.sort(key=lambda d: d.created_at, reverse=True)
        return deployments
