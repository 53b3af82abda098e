"""Metadata store implementations."""

from .base import ProjectStore
from .memory import InMemoryProjectStore
from .sql import SqlProjectStore

__all__ = ["InMemoryProjectStore", "ProjectStore", "SqlProjectStore"]
