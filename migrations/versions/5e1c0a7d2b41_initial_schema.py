"""initial_schema

Revision ID: 5e1c0a7d2b41
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5e1c0a7d2b41"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "generated_projects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=63), nullable=False),
        sa.Column("industry", sa.String(length=64), nullable=False),
        sa.Column("modules", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("output_path", sa.String(length=1024), nullable=True),
        sa.Column("frontend_path", sa.String(length=1024), nullable=True),
        sa.Column("backend_path", sa.String(length=1024), nullable=True),
        sa.Column("admin_path", sa.String(length=1024), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("frontend_url", sa.String(length=512), nullable=True),
        sa.Column("admin_url", sa.String(length=512), nullable=True),
        sa.Column("backend_url", sa.String(length=512), nullable=True),
        sa.Column("github_frontend", sa.String(length=512), nullable=True),
        sa.Column("github_backend", sa.String(length=512), nullable=True),
        sa.Column("github_admin", sa.String(length=512), nullable=True),
        sa.Column("hosting_project_id", sa.String(length=255), nullable=True),
        sa.Column("hosting_project_url", sa.String(length=512), nullable=True),
        sa.Column("api_tokens_used", sa.Integer(), nullable=False),
        sa.Column("api_cost", sa.Numeric(precision=10, scale=4), nullable=False),
        sa.Column("pages_generated", sa.Integer(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generated_projects_slug", "generated_projects", ["slug"])
    op.create_index("ix_generated_projects_status", "generated_projects", ["status"])

    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("idempotency_key", sa.String(length=64), nullable=False),
        sa.Column("spec", sa.JSON(), nullable=False),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("industry", sa.String(length=64), nullable=False),
        sa.Column("modules", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=True),
        sa.Column("output_path", sa.String(length=1024), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["generated_projects.id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generation_jobs_idempotency_key", "generation_jobs", ["idempotency_key"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])

    op.create_table(
        "deployments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("platform", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("url", sa.String(length=512), nullable=True),
        sa.Column("urls", sa.JSON(), nullable=False),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["generated_projects.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deployments_project_id", "deployments", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_deployments_project_id", table_name="deployments")
    op.drop_table("deployments")
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_idempotency_key", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    op.drop_index("ix_generated_projects_status", table_name="generated_projects")
    op.drop_index("ix_generated_projects_slug", table_name="generated_projects")
    op.drop_table("generated_projects")
