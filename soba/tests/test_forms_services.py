"""Tests for forms services that stage outbox events alongside entity writes."""

import pytest

pytestmark = pytest.mark.integration

from soba.core.errors import ConflictError, NotFoundError, ValidationError
from soba.core.forms.models import Form, FormEngine, FormVersion, FormVersionRevision, SubmissionRevision
from soba.core.forms.services import form_service, form_version_service, submission_service
from soba.extensions import db
from soba.platform.outbox.models import OutboxRecord


class TestFormService:
    def test_create_form_uses_default_engine(self, app, forms):
        form = form_service.create_form("ws-1", "user-1", slug=" feedback ", name="Feedback")
        assert form.slug == "feedback"
        assert form.form_engine_id == forms.engine.id
        assert form.created_by == "user-1"

    def test_duplicate_slug_in_workspace(self, app, forms):
        with pytest.raises(ConflictError):
            form_service.create_form("ws-1", "user-1", slug="intake", name="Intake again")
        other = form_service.create_form("ws-2", "user-1", slug="intake", name="Intake")
        assert other.workspace_id == "ws-2"

    def test_unknown_engine_code(self, app, forms):
        with pytest.raises(ValidationError, match="acme"):
            form_service.create_form("ws-1", "user-1", slug="x", name="X", engine_code="acme")

    def test_seed_form_engines_sets_single_default(self, app):
        catalog = [
            {"code": "formio-v5", "name": "Form.io v5", "version": "v5"},
            {"code": "legacy", "name": "Legacy", "version": None},
        ]
        engines = form_service.seed_form_engines(catalog, "formio-v5")
        assert [(e.code, e.is_default) for e in engines] == [("formio-v5", True), ("legacy", False)]

        engines = form_service.seed_form_engines(catalog, "legacy")
        assert [(e.code, e.is_default) for e in engines] == [("formio-v5", False), ("legacy", True)]
        assert FormEngine.query.count() == 2

    def test_seed_rejects_uninstalled_default(self, app):
        with pytest.raises(ValidationError, match="not installed"):
            form_service.seed_form_engines([{"code": "formio-v5", "name": "Form.io v5"}], "acme")


class TestFormVersionService:
    def test_create_draft_numbers_versions(self, app, forms):
        draft = form_version_service.create_draft("ws-1", "user-1", "form-1")
        assert draft.version_no == 2
        assert draft.state == "draft"
        assert draft.engine_sync_status == "pending"

    def test_create_draft_for_missing_form(self, app, forms):
        with pytest.raises(NotFoundError):
            form_version_service.create_draft("ws-1", "user-1", "form-404")

    def test_publish_with_provisioning_stages_event(self, app, forms):
        version = form_version_service.save(
            "ws-1", "user-1", "fv-1", event_type="publish", note="first release", enqueue_provision=True
        )

        assert version.state == "published"
        assert version.published_by == "user-1"
        assert version.published_at is not None
        assert version.current_revision_no == 1

        record = OutboxRecord.query.one()
        assert record.topic == "form_engine.formio-v5.form_version.create"
        assert record.aggregate_type == "form_version"
        assert record.aggregate_id == "fv-1"
        assert record.workspace_id == "ws-1"
        assert record.status == "pending"
        assert record.payload == {"formVersionId": "fv-1", "engineCode": "formio-v5", "formId": "form-1"}

    def test_save_without_provisioning(self, app, forms):
        form_version_service.save("ws-1", "user-1", "fv-1", event_type="edit")
        assert OutboxRecord.query.count() == 0
        assert db.session.get(FormVersion, "fv-1").state == "draft"

    def test_each_save_appends_a_revision_with_its_note(self, app, forms):
        form_version_service.save("ws-1", "user-1", "fv-1", event_type="edit", note="fix labels")
        form_version_service.save("ws-1", "user-2", "fv-1", event_type="publish")

        revisions = form_version_service.list_revisions("ws-1", "fv-1")

        assert [(r.revision_no, r.event_type, r.changed_by) for r in revisions] == [
            (1, "edit", "user-1"),
            (2, "publish", "user-2"),
        ]
        assert revisions[0].change_note == "fix labels"
        assert revisions[1].change_note is None
        assert revisions[0].before_engine_schema_ref is None
        assert revisions[0].after_engine_schema_ref is None
        assert form_version_service.list_revisions("ws-2", "fv-1") == []

    def test_missing_engine_rolls_back_the_revision(self, app, forms):
        orphan = Form(
            id="form-orphan",
            workspace_id="ws-1",
            form_engine_id="engine-404",
            slug="orphan",
            name="Orphan",
            created_by="user-1",
            updated_by="user-1",
        )
        db.session.add(orphan)
        db.session.add(
            FormVersion(
                id="fv-orphan",
                workspace_id="ws-1",
                form_id="form-orphan",
                version_no=1,
                created_by="user-1",
                updated_by="user-1",
            )
        )
        db.session.commit()

        with pytest.raises(ValidationError, match="valid form engine"):
            form_version_service.save(
                "ws-1", "user-1", "fv-orphan", event_type="publish", enqueue_provision=True
            )

        version = db.session.get(FormVersion, "fv-orphan")
        assert version.current_revision_no == 0
        assert FormVersionRevision.query.count() == 0
        assert version.state == "draft"
        assert OutboxRecord.query.count() == 0

    def test_save_missing_version(self, app, forms):
        with pytest.raises(NotFoundError):
            form_version_service.save("ws-1", "user-1", "fv-404", event_type="edit")

    def test_other_workspace_cannot_see_version(self, app, forms):
        assert form_version_service.get_form_version("ws-2", "fv-1") is None

    def test_delete_is_soft(self, app, forms):
        assert form_version_service.delete_form_version("ws-1", "user-1", "fv-1") is True
        assert form_version_service.get_form_version("ws-1", "fv-1") is None
        assert db.session.get(FormVersion, "fv-1").deleted_by == "user-1"
        assert form_version_service.delete_form_version("ws-1", "user-1", "fv-1") is False


class TestSubmissionService:
    def test_submit_with_provisioning_stages_event(self, app, forms):
        submission = submission_service.create_submission("ws-1", "user-2", "fv-1")
        assert submission.form_id == "form-1"
        assert submission.workflow_state == "draft"

        saved = submission_service.save(
            "ws-1", "user-2", submission.id, event_type="submit", enqueue_provision=True
        )

        assert saved.workflow_state == "submitted"
        assert saved.submitted_by == "user-2"
        assert saved.submitted_at is not None
        record = OutboxRecord.query.one()
        assert record.topic == "form_engine.formio-v5.submission.create"
        assert record.payload == {
            "submissionId": submission.id,
            "engineCode": "formio-v5",
            "formVersionId": "fv-1",
        }

    def test_save_missing_submission(self, app, forms):
        with pytest.raises(NotFoundError, match="Submission not found"):
            submission_service.save("ws-1", "user-2", "sub-404", event_type="submit", enqueue_provision=True)

    def test_save_records_revision_note(self, app, forms):
        submission = submission_service.create_submission("ws-1", "user-2", "fv-1")

        submission_service.save("ws-1", "user-2", submission.id, event_type="submit", note="ready for review")

        revision = SubmissionRevision.query.one()
        assert revision.submission_id == submission.id
        assert revision.workspace_id == "ws-1"
        assert revision.revision_no == 1
        assert revision.event_type == "submit"
        assert revision.changed_by == "user-2"
        assert revision.change_note == "ready for review"

    def test_create_for_missing_version(self, app, forms):
        with pytest.raises(NotFoundError):
            submission_service.create_submission("ws-1", "user-2", "fv-404")

    def test_delete_submission(self, app, forms):
        submission = submission_service.create_submission("ws-1", "user-2", "fv-1")
        assert submission_service.delete_submission("ws-1", "user-2", submission.id) is True
        assert submission_service.get_submission("ws-1", submission.id) is None
