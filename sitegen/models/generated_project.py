"""Generated project model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class GeneratedProject(Base):
    """A materialized project tree and, once deployed, its public URLs."""

    __tablename__ = "generated_projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(63), index=True, unique=True)
    industry: Mapped[str] = mapped_column(String(64))
    modules: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="building", index=True)

    output_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    frontend_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    backend_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    admin_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    frontend_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    admin_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    backend_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    github_frontend: Mapped[str | None] = mapped_column(String(512), nullable=True)
    github_backend: Mapped[str | None] = mapped_column(String(512), nullable=True)
    github_admin: Mapped[str | None] = mapped_column(String(512), nullable=True)
    hosting_project_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hosting_project_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    api_tokens_used: Mapped[int] = mapped_column(Integer, default=0)
    api_cost: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("0"))
    pages_generated: Mapped[int] = mapped_column(Integer, default=0)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    deployed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
