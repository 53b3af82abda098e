"""Generation job model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

# At most one queued, running or succeeded job per idempotency key
ACTIVE_KEY_WHERE = text("status IN ('queued', 'running', 'succeeded')")


class GenerationJob(Base):
    """One request to assemble a project. Owned by the queue."""

    __tablename__ = "generation_jobs"
    __table_args__ = (
        Index(
            "uq_generation_jobs_active_key",
            "idempotency_key",
            unique=True,
            postgresql_where=ACTIVE_KEY_WHERE,
            sqlite_where=ACTIVE_KEY_WHERE,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String(64), index=True)
    spec: Mapped[dict] = mapped_column(JSON, default=dict)
    business_name: Mapped[str] = mapped_column(String(255))
    industry: Mapped[str] = mapped_column(String(64))
    modules: Mapped[list] = mapped_column(JSON, default=list)

    status: Mapped[str] = mapped_column(String(20), default="queued", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    project_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("generated_projects.id", ondelete="SET NULL"), nullable=True
    )
    output_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
