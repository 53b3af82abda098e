"""Abstract metadata store for jobs, projects and deployments."""

from abc import ABC, abstractmethod
from typing import Any

from sitegen.contracts.dto import (
    DeploymentDTO,
    DeploymentStatus,
    GeneratedProjectDTO,
    JobDTO,
    JobStatus,
    ProjectStatus,
)

# Statuses that block a resubmission with the same idempotency key
ACTIVE_JOB_STATUSES = (JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.SUCCEEDED)

TERMINAL_JOB_STATUSES = (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProjectStore(ABC):
    """Storage interface used by the submitter, the worker and the deploy trigger.

    Every job status change goes through :meth:`transition_job`, which only
    applies when the row is currently in one of the expected statuses.
    """

    # Jobs

    @abstractmethod
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
        """Insert a new job in ``queued`` status."""

    @abstractmethod
    async def get_job(self, job_id: str) -> JobDTO | None:
        """Return the job or None."""

    @abstractmethod
    async def find_active_job(self, idempotency_key: str) -> JobDTO | None:
        """Return the newest queued, running or succeeded job with this key."""

    @abstractmethod
    async def transition_job(
        self,
        job_id: str,
        expected: tuple[JobStatus, ...],
        target: JobStatus,
        *,
        increment_attempts: bool = False,
        **fields: Any,
    ) -> JobDTO:
        """Conditionally move a job to ``target``.

        Raises:
            NotFoundError: no such job.
            InvalidTransitionError: the current status is not in ``expected``.
        """

    @abstractmethod
    async def update_job(self, job_id: str, **fields: Any) -> JobDTO:
        """Update non-status fields (progress, project_id, output_path)."""

    @abstractmethod
    async def count_jobs_by_status(self) -> dict[str, int]:
        """Job counts keyed by status value."""

    # Projects

    @abstractmethod
    async def create_project(self, *, project_id: str, **fields: Any) -> GeneratedProjectDTO:
        """Insert a project row."""

    @abstractmethod
    async def get_project(self, project_id: str) -> GeneratedProjectDTO | None:
        """Return the project or None."""

    @abstractmethod
    async def update_project(
        self,
        project_id: str,
        *,
        metadata: dict[str, Any] | None = None,
        **fields: Any,
    ) -> GeneratedProjectDTO:
        """Update project fields. ``metadata`` is merged into the stored dict."""

    @abstractmethod
    async def list_projects(
        self,
        *,
        status: ProjectStatus | None = None,
        missing_urls: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[GeneratedProjectDTO]:
        """Newest first."""

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """Delete a project row and its deployments."""

    # Deployments

    @abstractmethod
    async def create_deployment(
        self, *, deployment_id: str, project_id: str, platform: str
    ) -> DeploymentDTO:
        """Insert a ``pending`` deployment."""

    @abstractmethod
    async def update_deployment(self, deployment_id: str, **fields: Any) -> DeploymentDTO:
        """Update deployment fields."""

    @abstractmethod
    async def list_deployments(self, project_id: str) -> list[DeploymentDTO]:
        """Newest first."""

    async def latest_deployment(
        self, project_id: str, status: DeploymentStatus | None = None
    ) -> DeploymentDTO | None:
        for deployment in await self.list_deployments(project_id):
            if status is None or deployment.status == status:
                return deployment
        return None
