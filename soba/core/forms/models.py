"""Forms domain models: engines, forms, versions, submissions and their revisions."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from soba.core.utils.clock import utcnow
from soba.extensions import db

SYNC_PENDING = "pending"
SYNC_PROVISIONING = "provisioning"
SYNC_READY = "ready"
SYNC_ERROR = "error"
ENGINE_SYNC_STATUSES = (SYNC_PENDING, SYNC_PROVISIONING, SYNC_READY, SYNC_ERROR)

FORM_VERSION_DRAFT = "draft"
FORM_VERSION_PUBLISHED = "published"

SUBMISSION_DRAFT = "draft"
SUBMISSION_SUBMITTED = "submitted"


def _new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)


class AuditMixin(TimestampMixin):
    created_by: Mapped[str] = mapped_column(db.String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(db.String(64), nullable=False)


class SoftDeleteMixin:
    deleted_at: Mapped[datetime | None] = mapped_column()
    deleted_by: Mapped[str | None] = mapped_column(db.String(64))


class FormEngine(db.Model, TimestampMixin):
    __tablename__ = "platform_form_engine"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    code: Mapped[str] = mapped_column(db.String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    version: Mapped[str | None] = mapped_column(db.String(64))
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(default=False, nullable=False)


class Form(db.Model, AuditMixin, SoftDeleteMixin):
    __tablename__ = "form"
    __table_args__ = (
        db.UniqueConstraint("workspace_id", "slug", name="form_workspace_slug_uq"),
        db.Index("form_workspace_idx", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    form_engine_id: Mapped[str] = mapped_column(db.ForeignKey("platform_form_engine.id"), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(255), nullable=False)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="active")


class FormVersion(db.Model, AuditMixin, SoftDeleteMixin):
    __tablename__ = "form_version"
    __table_args__ = (
        db.UniqueConstraint(
            "workspace_id", "form_id", "version_no", name="form_version_workspace_form_version_uq"
        ),
        db.Index("form_version_workspace_idx", "workspace_id"),
        db.Index("form_version_form_idx", "form_id"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    form_id: Mapped[str] = mapped_column(db.ForeignKey("form.id"), nullable=False)
    version_no: Mapped[int] = mapped_column(nullable=False)
    state: Mapped[str] = mapped_column(db.String(32), nullable=False, default=FORM_VERSION_DRAFT)
    engine_schema_ref: Mapped[str | None] = mapped_column(db.Text)
    engine_sync_status: Mapped[str] = mapped_column(db.String(32), nullable=False, default=SYNC_PENDING)
    engine_sync_error: Mapped[str | None] = mapped_column(db.Text)
    current_revision_no: Mapped[int] = mapped_column(nullable=False, default=0)
    published_at: Mapped[datetime | None] = mapped_column()
    published_by: Mapped[str | None] = mapped_column(db.String(64))


class Submission(db.Model, AuditMixin, SoftDeleteMixin):
    __tablename__ = "submission"
    __table_args__ = (
        db.Index("submission_workspace_workflow_idx", "workspace_id", "workflow_state"),
        db.Index("submission_workspace_idx", "workspace_id"),
        db.Index("submission_form_version_idx", "form_version_id"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    form_id: Mapped[str] = mapped_column(db.ForeignKey("form.id"), nullable=False)
    form_version_id: Mapped[str] = mapped_column(db.ForeignKey("form_version.id"), nullable=False)
    submitted_by: Mapped[str | None] = mapped_column(db.String(64))
    workflow_state: Mapped[str] = mapped_column(db.String(32), nullable=False, default=SUBMISSION_DRAFT)
    engine_submission_ref: Mapped[str | None] = mapped_column(db.Text)
    engine_sync_status: Mapped[str] = mapped_column(db.String(32), nullable=False, default=SYNC_PENDING)
    engine_sync_error: Mapped[str | None] = mapped_column(db.Text)
    current_revision_no: Mapped[int] = mapped_column(nullable=False, default=0)
    submitted_at: Mapped[datetime | None] = mapped_column()


class FormVersionRevision(db.Model):
    """Append-only history of saves on a form version."""

    __tablename__ = "form_version_revision"
    __table_args__ = (
        db.UniqueConstraint(
            "workspace_id",
            "form_version_id",
            "revision_no",
            name="form_version_revision_workspace_form_version_revision_uq",
        ),
        db.Index("form_version_revision_workspace_idx", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    form_version_id: Mapped[str] = mapped_column(db.ForeignKey("form_version.id"), nullable=False)
    revision_no: Mapped[int] = mapped_column(nullable=False)
    event_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    before_engine_schema_ref: Mapped[str | None] = mapped_column(db.Text)
    after_engine_schema_ref: Mapped[str | None] = mapped_column(db.Text)
    changed_by: Mapped[str] = mapped_column(db.String(64), nullable=False)
    change_note: Mapped[str | None] = mapped_column(db.Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class SubmissionRevision(db.Model):
    __tablename__ = "submission_revision"
    __table_args__ = (
        db.UniqueConstraint(
            "workspace_id",
            "submission_id",
            "revision_no",
            name="submission_revision_workspace_submission_revision_uq",
        ),
        db.Index("submission_revision_workspace_idx", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    submission_id: Mapped[str] = mapped_column(db.ForeignKey("submission.id"), nullable=False)
    revision_no: Mapped[int] = mapped_column(nullable=False)
    event_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    before_engine_submission_ref: Mapped[str | None] = mapped_column(db.Text)
    after_engine_submission_ref: Mapped[str | None] = mapped_column(db.Text)
    changed_by: Mapped[str] = mapped_column(db.String(64), nullable=False)
    change_note: Mapped[str | None] = mapped_column(db.Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
