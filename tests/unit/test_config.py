import pytest
from pydantic import ValidationError

from sitegen.config import Settings

REQUIRED = {
    "database_url": "postgresql+asyncpg://user:pass@db:5432/sitegen",
    "redis_url": "redis://redis:6379/0",
}


class TestSettings:
    def test_required_urls(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("REDIS_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", REQUIRED["database_url"])
        monkeypatch.setenv("REDIS_URL", REQUIRED["redis_url"])
        monkeypatch.setenv("WORKER_CONCURRENCY", "4")
        monkeypatch.setenv("BASE_DOMAIN", "example.dev")

        settings = Settings(_env_file=None)

        assert settings.worker_concurrency == 4
        assert settings.base_domain == "example.dev"

    def test_log_level_normalized(self):
        settings = Settings(_env_file=None, log_level="debug", **REQUIRED)
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty", **REQUIRED)

    def test_database_ssl_defaults_to_environment(self):
        assert Settings(_env_file=None, environment="production", **REQUIRED).use_database_ssl
        assert not Settings(_env_file=None, environment="development", **REQUIRED).use_database_ssl
        assert not Settings(
            _env_file=None, environment="production", database_ssl=False, **REQUIRED
        ).use_database_ssl

    def test_llm_key_follows_provider(self):
        settings = Settings(
            _env_file=None,
            llm_provider="openrouter",
            open_router_key="or-key",
            openai_api_key="oa-key",
            **REQUIRED,
        )
        assert settings.llm_api_key == "or-key"
        settings = Settings(_env_file=None, openai_api_key="oa-key", **REQUIRED)
        assert settings.llm_api_key == "oa-key"
