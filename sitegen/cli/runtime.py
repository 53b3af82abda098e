"""Connections shared by the CLI commands."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sitegen.config import Settings
from sitegen.database import Database
from sitegen.deploy import DeploymentTrigger
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import ProjectStore, SqlProjectStore


@dataclass
class Services:
    settings: Settings
    store: ProjectStore
    stream: RedisStreamClient | None

    def trigger(self) -> DeploymentTrigger:
        return DeploymentTrigger.from_settings(self.store, self.settings)


@asynccontextmanager
async def open_services(settings: Settings, with_redis: bool = False) -> AsyncIterator[Services]:
    """Connect the database (and optionally Redis) for one command."""
    db = Database.from_settings(settings)
    db.connect()
    stream = None
    try:
        if with_redis:
            stream = RedisStreamClient(settings.redis_url)
            await stream.connect()
        yield Services(settings=settings, store=SqlProjectStore(db), stream=stream)
    finally:
        if stream is not None:
            await stream.close()
        await db.dispose()
