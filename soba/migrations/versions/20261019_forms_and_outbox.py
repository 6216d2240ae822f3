"""forms tables and integration outbox

Revision ID: 20261019_forms_and_outbox
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_forms_and_outbox"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=False),
        sa.Column("deleted_at", sa.DateTime()),
        sa.Column("deleted_by", sa.String(length=64)),
    ]


def upgrade():
    op.create_table(
        "platform_form_engine",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("version", sa.String(length=64)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "form",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column(
            "form_engine_id",
            sa.String(length=36),
            sa.ForeignKey("platform_form_engine.id"),
            nullable=False,
        ),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        *_audit_columns(),
        sa.UniqueConstraint("workspace_id", "slug", name="form_workspace_slug_uq"),
    )
    op.create_index("form_workspace_idx", "form", ["workspace_id"])

    op.create_table(
        "form_version",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column("form_id", sa.String(length=36), sa.ForeignKey("form.id"), nullable=False),
        sa.Column("version_no", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("engine_schema_ref", sa.Text()),
        sa.Column("engine_sync_status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("engine_sync_error", sa.Text()),
        sa.Column("current_revision_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("published_at", sa.DateTime()),
        sa.Column("published_by", sa.String(length=64)),
        *_audit_columns(),
        sa.UniqueConstraint(
            "workspace_id", "form_id", "version_no", name="form_version_workspace_form_version_uq"
        ),
    )
    op.create_index("form_version_workspace_idx", "form_version", ["workspace_id"])
    op.create_index("form_version_form_idx", "form_version", ["form_id"])

    op.create_table(
        "submission",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column("form_id", sa.String(length=36), sa.ForeignKey("form.id"), nullable=False),
        sa.Column(
            "form_version_id", sa.String(length=36), sa.ForeignKey("form_version.id"), nullable=False
        ),
        sa.Column("submitted_by", sa.String(length=64)),
        sa.Column("workflow_state", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("engine_submission_ref", sa.Text()),
        sa.Column("engine_sync_status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("engine_sync_error", sa.Text()),
        sa.Column("current_revision_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("submitted_at", sa.DateTime()),
        *_audit_columns(),
    )
    op.create_index("submission_workspace_idx", "submission", ["workspace_id"])
    op.create_index(
        "submission_workspace_workflow_idx", "submission", ["workspace_id", "workflow_state"]
    )
    op.create_index("submission_form_version_idx", "submission", ["form_version_id"])

    op.create_table(
        "integration_outbox",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("workspace_id", sa.String(length=36), nullable=False),
        sa.Column("topic", sa.Text(), nullable=False),
        sa.Column("aggregate_type", sa.String(length=64), nullable=False),
        sa.Column("aggregate_id", sa.String(length=36), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime()),
        sa.Column("last_error", sa.Text()),
        sa.Column("locked_by", sa.String(length=64)),
        sa.Column("locked_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(length=64)),
        sa.Column("updated_by", sa.String(length=64)),
        sa.CheckConstraint("attempt_count >= 0", name="integration_outbox_attempt_count_nonneg"),
    )
    op.create_index(
        "integration_outbox_status_workspace_idx", "integration_outbox", ["status", "workspace_id"]
    )
    op.create_index(
        "integration_outbox_status_next_attempt_idx", "integration_outbox", ["status", "next_attempt_at"]
    )
    op.create_index(
        "integration_outbox_aggregate_idx", "integration_outbox", ["aggregate_type", "aggregate_id"]
    )


def downgrade():
    op.drop_index("integration_outbox_aggregate_idx", table_name="integration_outbox")
    op.drop_index("integration_outbox_status_next_attempt_idx", table_name="integration_outbox")
    op.drop_index("integration_outbox_status_workspace_idx", table_name="integration_outbox")
    op.drop_table("integration_outbox")
    op.drop_index("submission_form_version_idx", table_name="submission")
    op.drop_index("submission_workspace_workflow_idx", table_name="submission")
    op.drop_index("submission_workspace_idx", table_name="submission")
    op.drop_table("submission")
    op.drop_index("form_version_form_idx", table_name="form_version")
    op.drop_index("form_version_workspace_idx", table_name="form_version")
    op.drop_table("form_version")
    op.drop_index("form_workspace_idx", table_name="form")
    op.drop_table("form")
    op.drop_table("platform_form_engine")
