"""Form version services: drafts, revisions, publishing and provisioning."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func

from soba.core.errors import NotFoundError, ValidationError
from soba.core.forms import repository
from soba.core.forms.events import AGGREGATE_FORM_VERSION, build_form_version_create_topic
from soba.core.forms.models import FORM_VERSION_PUBLISHED, FormVersion, FormVersionRevision
from soba.core.utils.clock import utcnow
from soba.extensions import db
from soba.platform.outbox import enqueue as enqueue_outbox

logger = logging.getLogger(__name__)

EVENT_PUBLISH = "publish"


def get_form_version(workspace_id: str, form_version_id: str) -> Optional[FormVersion]:
    return repository.get_form_version(workspace_id, form_version_id)


def list_revisions(workspace_id: str, form_version_id: str) -> list[FormVersionRevision]:
    return (
        FormVersionRevision.query.filter_by(workspace_id=workspace_id, form_version_id=form_version_id)
        .order_by(FormVersionRevision.revision_no.asc())
        .all()
    )


def create_draft(workspace_id: str, actor_id: str, form_id: str) -> FormVersion:
    form = repository.get_form(workspace_id, form_id)
    if form is None:
        raise NotFoundError("Form not found")

    latest = (
        db.session.query(func.max(FormVersion.version_no))
        .filter(FormVersion.workspace_id == workspace_id, FormVersion.form_id == form_id)
        .scalar()
    )
    form_version = FormVersion(
        workspace_id=workspace_id,
        form_id=form_id,
        version_no=(latest or 0) + 1,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.session.add(form_version)
    db.session.commit()
    return form_version


def save(
    workspace_id: str,
    actor_id: str,
    form_version_id: str,
    *,
    event_type: str,
    note: str | None = None,
    enqueue_provision: bool = False,
) -> FormVersion:
    """
    Record a revision and optionally queue engine provisioning.

    The revision row, the version bump and the outbox record commit together.
    `note` is stored as the revision's change note.
    """
    form_version = repository.get_form_version(workspace_id, form_version_id)
    if form_version is None:
        raise NotFoundError("Form version not found")

    now = utcnow()
    form_version.current_revision_no = (form_version.current_revision_no or 0) + 1
    form_version.updated_by = actor_id
    form_version.updated_at = now
    if event_type == EVENT_PUBLISH:
        form_version.state = FORM_VERSION_PUBLISHED
        form_version.published_at = now
        form_version.published_by = actor_id
    # Engine refs only change through provisioning, so a save records the ref as-is.
    db.session.add(
        FormVersionRevision(
            workspace_id=workspace_id,
            form_version_id=form_version.id,
            revision_no=form_version.current_revision_no,
            event_type=event_type,
            before_engine_schema_ref=form_version.engine_schema_ref,
            after_engine_schema_ref=form_version.engine_schema_ref,
            changed_by=actor_id,
            change_note=note,
            created_at=now,
        )
    )

    try:
        if enqueue_provision:
            engine_code = repository.get_form_engine_code_for_form(workspace_id, form_version.form_id)
            if not engine_code:
                raise ValidationError("Cannot enqueue form version provision without a valid form engine")
            enqueue_outbox(
                {
                    "topic": build_form_version_create_topic(engine_code),
                    "aggregate_type": AGGREGATE_FORM_VERSION,
                    "aggregate_id": form_version.id,
                    "workspace_id": workspace_id,
                    "payload": {
                        "formVersionId": form_version.id,
                        "engineCode": engine_code,
                        "formId": form_version.form_id,
                    },
                    "actor_id": actor_id,
                }
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.debug(
        "Form version %s saved (event=%s, revision=%s)",
        form_version.id,
        event_type,
        form_version.current_revision_no,
    )
    return form_version


def delete_form_version(workspace_id: str, actor_id: str, form_version_id: str) -> bool:
    form_version = repository.get_form_version(workspace_id, form_version_id)
    if form_version is None:
        return False
    now = utcnow()
    form_version.deleted_at = now
    form_version.deleted_by = actor_id
    form_version.updated_by = actor_id
    form_version.updated_at = now
    db.session.commit()
    return True
