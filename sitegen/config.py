"""Settings for the generator platform, loaded with pydantic-settings.

Every process (API, worker, CLI tools) builds one ``Settings`` instance at
startup through :func:`get_settings`. Values come from the environment or a
local ``.env`` file.

Usage:
    from sitegen.config import get_settings

    settings = get_settings()
    engine = create_async_engine(settings.database_url)
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def database_url_field(required: bool = True):
    """Database URL field definition."""
    if required:
        return Field(
            ...,
            description="PostgreSQL connection URL",
            examples=["postgresql+asyncpg://user:pass@db:5432/sitegen"],
        )
    return Field(
        default=None,
        description="PostgreSQL connection URL (optional)",
    )


def redis_url_field(required: bool = True):
    """Redis URL field definition."""
    if required:
        return Field(
            ...,
            description="Redis connection URL",
            examples=["redis://redis:6379/0"],
        )
    return Field(
        default=None,
        description="Redis connection URL (optional)",
    )


class Settings(BaseSettings):
    """Platform settings.

    Only ``DATABASE_URL`` and ``REDIS_URL`` are required. Provider tokens are
    optional; deployments fail fast when they are missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Required ===
    database_url: str = database_url_field(required=True)
    redis_url: str = redis_url_field(required=True)

    # === Runtime ===
    environment: Literal["development", "test", "production"] = "development"
    service_name: str = Field(default="sitegen", description="Service name for structured logging")
    log_format: Literal["json", "console"] = Field(default="console")
    log_level: str = Field(default="INFO")

    database_ssl: bool | None = Field(
        default=None,
        description="Force SSL for the database. Defaults to on in production.",
    )

    # === Generation ===
    output_root: Path = Field(
        default=Path("generated-projects"),
        description="Directory that receives one sub-directory per generated project",
    )
    template_dir: Path | None = Field(
        default=None,
        description="Override for the packaged Jinja2 template tree",
    )
    build_enabled: bool = True
    install_command: str = "npm install --no-audit --no-fund"
    build_command: str = "npm run build"
    build_timeout_seconds: int = Field(default=600, ge=1)

    # === Worker ===
    worker_concurrency: int = Field(default=2, ge=1, le=32)
    worker_block_ms: int = Field(default=5000, ge=100)
    visibility_timeout_ms: int = Field(
        default=15 * 60 * 1000,
        ge=1000,
        description="Idle time after which an un-acked job is redelivered",
    )
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay_seconds: float = Field(default=5.0, ge=0)
    retry_max_delay_seconds: float = Field(default=300.0, ge=0)

    # === AI content ===
    llm_provider: Literal["openai", "openrouter"] = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    openai_api_key: str | None = None
    open_router_key: str | None = None

    # === Deployment providers ===
    github_token: str | None = None
    railway_token: str | None = None
    railway_team_id: str | None = None
    cloudflare_token: str | None = None
    cloudflare_zone_id: str | None = None
    base_domain: str = "be1st.io"
    admin_email: str = "admin@be1st.io"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @property
    def use_database_ssl(self) -> bool:
        if self.database_ssl is not None:
            return self.database_ssl
        return self.environment == "production"

    @property
    def llm_api_key(self) -> str | None:
        if self.llm_provider == "openrouter":
            return self.open_router_key
        return self.openai_api_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validates required env vars on first call.
    Raises ValidationError if DATABASE_URL or REDIS_URL are missing.
    """
    return Settings()
