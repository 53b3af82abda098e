"""unique_slug_and_active_job_key

Revision ID: 9b2d4e6f8a10
Revises: 5e1c0a7d2b41
Create Date: 2026-10-19 10:30:00.000000

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9b2d4e6f8a10"
down_revision: str | None = "5e1c0a7d2b41"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ACTIVE_KEY_WHERE = sa.text("status IN ('queued', 'running', 'succeeded')")


def upgrade() -> None:
    op.drop_index("ix_generated_projects_slug", table_name="generated_projects")
    op.create_index("ix_generated_projects_slug", "generated_projects", ["slug"], unique=True)
    op.create_index(
        "uq_generation_jobs_active_key",
        "generation_jobs",
        ["idempotency_key"],
        unique=True,
        postgresql_where=ACTIVE_KEY_WHERE,
    )


def downgrade() -> None:
    op.drop_index("uq_generation_jobs_active_key", table_name="generation_jobs")
    op.drop_index("ix_generated_projects_slug", table_name="generated_projects")
    op.create_index("ix_generated_projects_slug", "generated_projects", ["slug"])
