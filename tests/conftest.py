from collections.abc import AsyncGenerator
from pathlib import Path

from fakeredis import aioredis
import pytest

from sitegen.config import Settings
from sitegen.database import Database
from sitegen.generator import (
    BuildRunner,
    ContentGenerator,
    ProjectAssembler,
    TemplateRenderer,
    get_catalog,
)
from sitegen.queues import ensure_consumer_groups
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import InMemoryProjectStore, SqlProjectStore

BASE_DOMAIN = "be1st.io"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/sitegen.db",
        redis_url="redis://localhost:6379/0",
        environment="test",
        output_root=tmp_path / "generated",
        build_enabled=False,
        retry_base_delay_seconds=1.0,
        retry_max_delay_seconds=8.0,
        openai_api_key=None,
        github_token=None,
        railway_token=None,
        cloudflare_token=None,
    )


@pytest.fixture
async def redis_client():
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.aclose()


@pytest.fixture
async def stream(redis_client) -> RedisStreamClient:
    client = RedisStreamClient(client=redis_client)
    await ensure_consumer_groups(redis_client)
    return client


@pytest.fixture
def store() -> InMemoryProjectStore:
    return InMemoryProjectStore()


@pytest.fixture
async def sql_store(settings: Settings) -> AsyncGenerator[SqlProjectStore, None]:
    db = Database(settings.database_url)
    db.connect()
    await db.create_all()
    yield SqlProjectStore(db)
    await db.dispose()


@pytest.fixture
def catalog():
    return get_catalog()


@pytest.fixture
def assembler(tmp_path: Path, catalog) -> ProjectAssembler:
    return ProjectAssembler(
        TemplateRenderer(),
        ContentGenerator(None),
        catalog,
        output_root=tmp_path / "generated",
        base_domain=BASE_DOMAIN,
    )


@pytest.fixture
def builder() -> BuildRunner:
    return BuildRunner(enabled=False)


@pytest.fixture
def cafe_payload() -> dict:
    return {
        "name": "Coffee2U",
        "industry": "cafe",
        "modules": ["menu", "booking"],
        "description": "Neighbourhood coffee shop with fresh pastries.",
        "location": "12 Main Street",
        "test_mode": True,
    }
