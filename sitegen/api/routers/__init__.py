"""Routers package."""

from . import health, jobs, projects

__all__ = ["health", "jobs", "projects"]
