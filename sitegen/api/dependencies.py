"""FastAPI dependencies.

Process-wide objects are created in the lifespan handler and stored on
``app.state``; tests replace them through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from sitegen.config import Settings
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import ProjectStore
from sitegen.submission import JobSubmitter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ProjectStore:
    return request.app.state.store


def get_stream(request: Request) -> RedisStreamClient:
    return request.app.state.stream


def get_submitter(
    store: ProjectStore = Depends(get_store),
    stream: RedisStreamClient = Depends(get_stream),
    settings: Settings = Depends(get_app_settings),
) -> JobSubmitter:
    return JobSubmitter(store, stream, max_attempts=settings.max_attempts)
