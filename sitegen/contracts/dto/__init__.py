from .job import JobDTO, JobStatus, QueueStatusDTO, SubmitResult
from .project import (
    AdminTier,
    DeploymentDTO,
    DeploymentStatus,
    GeneratedProjectDTO,
    ProjectSpec,
    ProjectStatus,
)

__all__ = [
    "AdminTier",
    "DeploymentDTO",
    "DeploymentStatus",
    "GeneratedProjectDTO",
    "JobDTO",
    "JobStatus",
    "ProjectSpec",
    "ProjectStatus",
    "QueueStatusDTO",
    "SubmitResult",
]
