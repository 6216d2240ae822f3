"""Workspace-scoped lookups and sync-state writes on forms entities.

`FormEntityGateway` is the seam the sync engine uses to read the owning
entity of an outbox record and to record engine sync progress on it. Every
write commits on its own so progress is visible to API readers while the
downstream call is still running.
"""

from __future__ import annotations

from typing import Any, Optional

from soba.core.errors import NotFoundError
from soba.core.forms.models import Form, FormEngine, FormVersion, Submission
from soba.core.utils.clock import utcnow
from soba.extensions import db

FORM_VERSION_SYNC_FIELDS = frozenset({"engine_schema_ref", "engine_sync_status", "engine_sync_error"})
SUBMISSION_SYNC_FIELDS = frozenset({"engine_submission_ref", "engine_sync_status", "engine_sync_error"})


def get_form_version(workspace_id: str, form_version_id: str) -> Optional[FormVersion]:
    return (
        FormVersion.query.filter_by(id=form_version_id, workspace_id=workspace_id)
        .filter(FormVersion.deleted_at.is_(None))
        .first()
    )


def get_submission(workspace_id: str, submission_id: str) -> Optional[Submission]:
    return (
        Submission.query.filter_by(id=submission_id, workspace_id=workspace_id)
        .filter(Submission.deleted_at.is_(None))
        .first()
    )


def get_form(workspace_id: str, form_id: str) -> Optional[Form]:
    return (
        Form.query.filter_by(id=form_id, workspace_id=workspace_id)
        .filter(Form.deleted_at.is_(None))
        .first()
    )


def get_form_engine_code_for_form(workspace_id: str, form_id: str) -> Optional[str]:
    """Return the engine code configured on a form, or None when unknown."""
    row = (
        db.session.query(FormEngine.code)
        .join(Form, Form.form_engine_id == FormEngine.id)
        .filter(Form.id == form_id, Form.workspace_id == workspace_id)
        .first()
    )
    return row[0] if row else None


def _apply_patch(entity: Any, actor_id: str, patch: dict, allowed: frozenset) -> None:
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(f"Unsupported sync fields: {', '.join(sorted(unknown))}")
    for key, value in patch.items():
        setattr(entity, key, value)
    entity.updated_by = actor_id
    entity.updated_at = utcnow()


class FormEntityGateway:
    """Entity access used by the sync engine."""

    def get_form_version(self, workspace_id: str, form_version_id: str) -> Optional[FormVersion]:
        return get_form_version(workspace_id, form_version_id)

    def get_submission(self, workspace_id: str, submission_id: str) -> Optional[Submission]:
        return get_submission(workspace_id, submission_id)

    def get_form_engine_code_for_form(self, workspace_id: str, form_id: str) -> Optional[str]:
        return get_form_engine_code_for_form(workspace_id, form_id)

    def update_form_version_sync(
        self, workspace_id: str, form_version_id: str, actor_id: str, **patch
    ) -> FormVersion:
        form_version = get_form_version(workspace_id, form_version_id)
        if form_version is None:
            raise NotFoundError(f"Form version '{form_version_id}' not found")
        _apply_patch(form_version, actor_id, patch, FORM_VERSION_SYNC_FIELDS)
        db.session.commit()
        return form_version

    def update_submission_sync(
        self, workspace_id: str, submission_id: str, actor_id: str, **patch
    ) -> Submission:
        submission = get_submission(workspace_id, submission_id)
        if submission is None:
            raise NotFoundError(f"Submission '{submission_id}' not found")
        _apply_patch(submission, actor_id, patch, SUBMISSION_SYNC_FIELDS)
        db.session.commit()
        return submission


__all__ = [
    "FormEntityGateway",
    "get_form",
    "get_form_engine_code_for_form",
    "get_form_version",
    "get_submission",
]
