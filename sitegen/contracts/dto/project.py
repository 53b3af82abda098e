from datetime import datetime
from decimal import Decimal
from enum import Enum
import hashlib
import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProjectStatus(str, Enum):
    """Generated project lifecycle status."""

    BUILDING = "building"
    BUILD_PASSED = "build_passed"
    BUILD_FAILED = "build_failed"
    COMPLETED = "completed"
    FAILED = "failed"
    DEPLOYED = "deployed"
    DEPLOY_FAILED = "deploy_failed"


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class AdminTier(str, Enum):
    STANDARD = "standard"
    PRO = "pro"
    ENTERPRISE = "enterprise"


_MODULE_NAME = re.compile(r"^[a-z][a-z0-9-]*$")


class ProjectSpec(BaseModel):
    """Project specification submitted by a customer or operator.

    Only shape is checked here; module names are checked against the module
    library by the submitter.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    industry: str = Field(..., min_length=1, max_length=64)
    modules: list[str] = Field(default_factory=list)
    description: str | None = Field(default=None, max_length=4000)
    pages: list[str] = Field(default_factory=list)
    theme: dict[str, Any] = Field(default_factory=dict)
    admin_tier: AdminTier = AdminTier.STANDARD
    admin_modules: list[str] = Field(default_factory=list)
    location: str | None = None
    phone: str | None = None
    email: str | None = None
    tagline: str | None = None
    auto_deploy: bool = False
    test_mode: bool = False
    priority: int = Field(default=0, ge=0, le=10)

    @field_validator("name")
    @classmethod
    def name_has_alphanumeric(cls, v: str) -> str:
        if not re.search(r"[A-Za-z0-9]", v):
            raise ValueError("name must contain at least one letter or digit")
        return v

    @field_validator("industry")
    @classmethod
    def normalize_industry(cls, v: str) -> str:
        return v.lower().replace(" ", "-")

    @field_validator("modules", "pages", "admin_modules")
    @classmethod
    def normalize_names(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for item in v:
            name = item.strip().lower()
            if not _MODULE_NAME.match(name):
                raise ValueError(f"invalid identifier: {item!r}")
            if name not in seen:
                seen.append(name)
        return seen

    def idempotency_key(self) -> str:
        """Stable hash of the spec; identical submissions share a key."""
        canonical = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()


class GeneratedProjectDTO(BaseModel):
    """Project response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    industry: str
    modules: list[str] = []
    status: ProjectStatus
    output_path: str | None = None
    frontend_path: str | None = None
    backend_path: str | None = None
    admin_path: str | None = None
    domain: str | None = None
    frontend_url: str | None = None
    admin_url: str | None = None
    backend_url: str | None = None
    github_frontend: str | None = None
    github_backend: str | None = None
    github_admin: str | None = None
    hosting_project_id: str | None = None
    hosting_project_url: str | None = None
    api_tokens_used: int = 0
    api_cost: Decimal = Decimal("0")
    pages_generated: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deployed_at: datetime | None = None


class DeploymentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    platform: str
    status: DeploymentStatus
    url: str | None = None
    urls: dict[str, str | None] = {}
    steps: list[dict[str, Any]] = []
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
