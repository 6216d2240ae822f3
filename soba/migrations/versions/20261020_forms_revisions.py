"""form version and submission revision history

Revision ID: 20261020_forms_revisions
Revises: 20261019_forms_and_outbox
Create Date: 2026-10-20
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261020_forms_revisions"
down_revision = "20261019_forms_and_outbox"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "form_version_revision",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column("form_version_id", sa.String(length=36), sa.ForeignKey("form_version.id"), nullable=False),
        sa.Column("revision_no", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("before_engine_schema_ref", sa.Text()),
        sa.Column("after_engine_schema_ref", sa.Text()),
        sa.Column("changed_by", sa.String(length=64), nullable=False),
        sa.Column("change_note", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "workspace_id",
            "form_version_id",
            "revision_no",
            name="form_version_revision_workspace_form_version_revision_uq",
        ),
    )
    op.create_index("form_version_revision_workspace_idx", "form_version_revision", ["workspace_id"])

    op.create_table(
        "submission_revision",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column("submission_id", sa.String(length=36), sa.ForeignKey("submission.id"), nullable=False),
        sa.Column("revision_no", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("before_engine_submission_ref", sa.Text()),
        sa.Column("after_engine_submission_ref", sa.Text()),
        sa.Column("changed_by", sa.String(length=64), nullable=False),
        sa.Column("change_note", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "workspace_id",
            "submission_id",
            "revision_no",
            name="submission_revision_workspace_submission_revision_uq",
        ),
    )
    op.create_index("submission_revision_workspace_idx", "submission_revision", ["workspace_id"])


def downgrade():
    op.drop_index("submission_revision_workspace_idx", table_name="submission_revision")
    op.drop_table("submission_revision")
    op.drop_index("form_version_revision_workspace_idx", table_name="form_version_revision")
    op.drop_table("form_version_revision")
