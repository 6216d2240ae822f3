"""Submission services with outbox-backed engine provisioning."""

from __future__ import annotations

from typing import Optional

from soba.core.errors import NotFoundError, ValidationError
from soba.core.forms import repository
from soba.core.forms.events import AGGREGATE_SUBMISSION, build_submission_create_topic
from soba.core.forms.models import SUBMISSION_SUBMITTED, Submission, SubmissionRevision
from soba.core.utils.clock import utcnow
from soba.extensions import db
from soba.platform.outbox import enqueue as enqueue_outbox

EVENT_SUBMIT = "submit"


def get_submission(workspace_id: str, submission_id: str) -> Optional[Submission]:
    return repository.get_submission(workspace_id, submission_id)


def create_submission(workspace_id: str, actor_id: str, form_version_id: str) -> Submission:
    form_version = repository.get_form_version(workspace_id, form_version_id)
    if form_version is None:
        raise NotFoundError("Form version not found")

    submission = Submission(
        workspace_id=workspace_id,
        form_id=form_version.form_id,
        form_version_id=form_version.id,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.session.add(submission)
    db.session.commit()
    return submission


def save(
    workspace_id: str,
    actor_id: str,
    submission_id: str,
    *,
    event_type: str,
    note: str | None = None,
    enqueue_provision: bool = False,
) -> Submission:
    submission = repository.get_submission(workspace_id, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")

    now = utcnow()
    submission.current_revision_no = (submission.current_revision_no or 0) + 1
    submission.updated_by = actor_id
    submission.updated_at = now
    if event_type == EVENT_SUBMIT:
        submission.workflow_state = SUBMISSION_SUBMITTED
        submission.submitted_by = actor_id
        submission.submitted_at = now
    db.session.add(
        SubmissionRevision(
            workspace_id=workspace_id,
            submission_id=submission.id,
            revision_no=submission.current_revision_no,
            event_type=event_type,
            before_engine_submission_ref=submission.engine_submission_ref,
            after_engine_submission_ref=submission.engine_submission_ref,
            changed_by=actor_id,
            change_note=note,
            created_at=now,
        )
    )

    try:
        if enqueue_provision:
            engine_code = repository.get_form_engine_code_for_form(workspace_id, submission.form_id)
            if not engine_code:
                raise ValidationError("Cannot enqueue submission provision without a valid form engine")
            enqueue_outbox(
                {
                    "topic": build_submission_create_topic(engine_code),
                    "aggregate_type": AGGREGATE_SUBMISSION,
                    "aggregate_id": submission.id,
                    "workspace_id": workspace_id,
                    "payload": {
                        "submissionId": submission.id,
                        "engineCode": engine_code,
                        "formVersionId": submission.form_version_id,
                    },
                    "actor_id": actor_id,
                }
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return submission


def delete_submission(workspace_id: str, actor_id: str, submission_id: str) -> bool:
    submission = repository.get_submission(workspace_id, submission_id)
    if submission is None:
        return False
    now = utcnow()
    submission.deleted_at = now
    submission.deleted_by = actor_id
    submission.updated_by = actor_id
    submission.updated_at = now
    db.session.commit()
    return True
