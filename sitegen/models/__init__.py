"""Database models."""

from .base import Base
from .deployment import Deployment
from .generated_project import GeneratedProject
from .generation_job import GenerationJob

__all__ = [
    "Base",
    "Deployment",
    "GeneratedProject",
    "GenerationJob",
]
