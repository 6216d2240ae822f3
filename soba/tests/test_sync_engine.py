"""Tests for the sync engine against seeded forms entities."""

from __future__ import annotations

import subprocess
import sys
import textwrap
import threading
from pathlib import Path

import pytest

pytestmark = pytest.mark.integration

from soba.core.errors import NotFoundError
from soba.core.forms.models import Submission
from soba.extensions import db
from soba.platform.engines import (
    FormEngineAdapter,
    FormEngineDefinition,
    FormEngineRegistry,
    ProvisionResult,
    UnknownFormEngineError,
)
from soba.platform.outbox.models import OutboxRecord
from soba.platform.outbox.schemas import EventPayloadError
from soba.platform.sync import (
    AdapterTimeoutError,
    EngineResolutionError,
    InvalidEngineResponseError,
    SyncEngine,
    UnsupportedAggregateError,
)

REPO_ROOT = Path(__file__).resolve().parents[2]


class RecordingAdapter(FormEngineAdapter):
    def __init__(self, prefix: str = "fake"):
        self.prefix = prefix
        self.calls: list = []

    def create_form_version_schema(self, request):
        self.calls.append(request)
        return ProvisionResult(engine_ref=f"{self.prefix}-schema-{request.form_version_id}")

    def create_submission_record(self, request):
        self.calls.append(request)
        return ProvisionResult(engine_ref=f"{self.prefix}-submission-{request.submission_id}")


class BlockingAdapter(RecordingAdapter):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def create_form_version_schema(self, request):
        self.release.wait(5)
        return super().create_form_version_schema(request)


class EmptyRefAdapter(RecordingAdapter):
    def create_form_version_schema(self, request):
        return ProvisionResult(engine_ref="")


def _registry(**adapters) -> FormEngineRegistry:
    return FormEngineRegistry(
        [
            FormEngineDefinition(code=code.replace("_", "-"), name=code, factory=lambda _cfg, a=adapter: a)
            for code, adapter in adapters.items()
        ]
    )


def _record(aggregate_type: str, aggregate_id: str, payload: dict) -> OutboxRecord:
    record = OutboxRecord(
        workspace_id="ws-1",
        topic=f"form_engine.test.{aggregate_type}.create",
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        payload=payload,
        status="processing",
    )
    db.session.add(record)
    db.session.commit()
    return record


def test_requires_system_actor():
    with pytest.raises(ValueError, match="system actor"):
        SyncEngine(_registry(), system_actor_id="")


class TestFormVersionSync:
    def test_success_marks_entity_ready(self, app, forms):
        adapter = RecordingAdapter()
        engine = SyncEngine(_registry(formio_v5=adapter), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1", "engineCode": "formio-v5"})

        result = engine.process(record)

        assert result.engine_ref == "fake-schema-fv-1"
        assert adapter.calls[0].form_id == "form-1"
        assert adapter.calls[0].workspace_id == "ws-1"
        db.session.refresh(forms.form_version)
        assert forms.form_version.engine_sync_status == "ready"
        assert forms.form_version.engine_schema_ref == "fake-schema-fv-1"
        assert forms.form_version.engine_sync_error is None
        assert forms.form_version.updated_by == "soba-system"

    def test_payload_engine_code_takes_precedence(self, app, forms):
        formio = RecordingAdapter("formio")
        other = RecordingAdapter("other")
        engine = SyncEngine(_registry(formio_v5=formio, other_engine=other), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1", "engineCode": "other-engine"})

        assert engine.resolve_engine_code(record) == "other-engine"
        engine.process(record)

        assert other.calls and not formio.calls

    def test_falls_back_to_form_engine_when_payload_has_none(self, app, forms):
        adapter = RecordingAdapter()
        engine = SyncEngine(_registry(formio_v5=adapter), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1"})

        assert engine.resolve_engine_code(record) == "formio-v5"
        engine.process(record)
        assert adapter.calls[0].form_id == "form-1"

    def test_missing_entity_without_engine_code(self, app, forms):
        engine = SyncEngine(_registry(formio_v5=RecordingAdapter()), system_actor_id="soba-system")
        record = _record("form_version", "fv-404", {"formVersionId": "fv-404"})

        with pytest.raises(EngineResolutionError, match="fv-404"):
            engine.process(record)

    def test_missing_entity_with_engine_code(self, app, forms):
        engine = SyncEngine(_registry(formio_v5=RecordingAdapter()), system_actor_id="soba-system")
        record = _record("form_version", "fv-404", {"formVersionId": "fv-404", "engineCode": "formio-v5"})

        with pytest.raises(NotFoundError):
            engine.process(record)

    def test_unknown_engine_leaves_entity_untouched(self, app, forms):
        engine = SyncEngine(_registry(formio_v5=RecordingAdapter()), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1", "engineCode": "acme"})

        with pytest.raises(UnknownFormEngineError):
            engine.process(record)

        db.session.refresh(forms.form_version)
        assert forms.form_version.engine_sync_status == "pending"

    def test_adapter_timeout(self, app, forms):
        adapter = BlockingAdapter()
        engine = SyncEngine(
            _registry(formio_v5=adapter), system_actor_id="soba-system", adapter_timeout=0.05
        )
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1", "engineCode": "formio-v5"})

        try:
            with pytest.raises(AdapterTimeoutError):
                engine.process(record)
        finally:
            adapter.release.set()

        db.session.refresh(forms.form_version)
        assert forms.form_version.engine_sync_status == "provisioning"
        assert forms.form_version.engine_schema_ref is None

    def test_timed_out_call_does_not_block_interpreter_exit(self):
        script = textwrap.dedent(
            """
            import sys
            import threading

            from soba.platform.engines import FormEngineRegistry
            from soba.platform.sync import AdapterTimeoutError, SyncEngine

            engine = SyncEngine(
                FormEngineRegistry([]), system_actor_id="soba-system", adapter_timeout=0.1
            )
            try:
                engine._call_adapter(lambda request: threading.Event().wait(), None)
            except AdapterTimeoutError:
                sys.exit(3)
            sys.exit(0)
            """
        )

        completed = subprocess.run(
            [sys.executable, "-c", script],
            cwd=REPO_ROOT,
            capture_output=True,
            text=True,
            timeout=30,
        )

        assert completed.returncode == 3, completed.stderr

    def test_empty_engine_ref_is_a_failure(self, app, forms):
        engine = SyncEngine(_registry(formio_v5=EmptyRefAdapter()), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-1", "engineCode": "formio-v5"})

        with pytest.raises(InvalidEngineResponseError):
            engine.process(record)

        db.session.refresh(forms.form_version)
        assert forms.form_version.engine_sync_status == "provisioning"

    def test_payload_for_another_aggregate(self, app, forms):
        engine = SyncEngine(_registry(formio_v5=RecordingAdapter()), system_actor_id="soba-system")
        record = _record("form_version", "fv-1", {"formVersionId": "fv-2", "engineCode": "formio-v5"})

        with pytest.raises(EventPayloadError):
            engine.process(record)


class TestSubmissionSync:
    def test_submission_uses_stored_form_version(self, app, forms):
        submission = Submission(
            id="sub-1",
            workspace_id="ws-1",
            form_id="form-1",
            form_version_id="fv-1",
            created_by="user-1",
            updated_by="user-1",
        )
        db.session.add(submission)
        db.session.commit()

        adapter = RecordingAdapter()
        engine = SyncEngine(_registry(formio_v5=adapter), system_actor_id="soba-system")
        record = _record("submission", "sub-1", {"submissionId": "sub-1"})

        engine.process(record)

        assert adapter.calls[0].form_version_id == "fv-1"
        db.session.refresh(submission)
        assert submission.engine_sync_status == "ready"
        assert submission.engine_submission_ref == "fake-submission-sub-1"


def test_unsupported_aggregate(app, forms):
    engine = SyncEngine(_registry(formio_v5=RecordingAdapter()), system_actor_id="soba-system")
    record = _record("widget", "w-1", {"widgetId": "w-1"})

    with pytest.raises(UnsupportedAggregateError, match="Unsupported aggregate type: widget"):
        engine.process(record)
