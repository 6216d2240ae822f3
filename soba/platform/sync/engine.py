"""Sync engine: provisions claimed outbox records in their form engine.

For each record the engine resolves which form engine owns it, marks the
owning entity as provisioning, calls the adapter, and records the returned
engine ref on the entity. Any failure propagates to the caller, which is
responsible for requeueing the outbox record; the entity is never marked
ready on failure.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol

from soba.core.forms.events import AGGREGATE_FORM_VERSION, AGGREGATE_SUBMISSION
from soba.core.forms.models import SYNC_PROVISIONING, SYNC_READY
from soba.core.forms.repository import FormEntityGateway
from soba.platform.engines.adapter import (
    FormEngineAdapter,
    FormVersionProvisionInput,
    ProvisionResult,
    SubmissionProvisionInput,
)
from soba.platform.outbox.models import OutboxRecord
from soba.platform.outbox.schemas import decode_event
from soba.platform.sync.errors import (
    AdapterTimeoutError,
    EngineResolutionError,
    InvalidEngineResponseError,
    UnsupportedAggregateError,
)

logger = logging.getLogger(__name__)


class EngineAdapterResolver(Protocol):
    def resolve(self, engine_code: str) -> FormEngineAdapter: ...


class SyncEngine:
    def __init__(
        self,
        resolver: EngineAdapterResolver,
        *,
        system_actor_id: str,
        entities: Optional[FormEntityGateway] = None,
        adapter_timeout: Optional[float] = None,
    ) -> None:
        if not system_actor_id:
            raise ValueError("A system actor id is required for worker sync updates")
        self.resolver = resolver
        self.system_actor_id = system_actor_id
        self.entities = entities or FormEntityGateway()
        self.adapter_timeout = adapter_timeout or None
        self._handlers: Dict[str, Callable[[OutboxRecord, Any], ProvisionResult]] = {
            AGGREGATE_FORM_VERSION: self._sync_form_version,
            AGGREGATE_SUBMISSION: self._sync_submission,
        }

    def process(self, record: OutboxRecord) -> ProvisionResult:
        handler = self._handlers.get(record.aggregate_type)
        if handler is None:
            raise UnsupportedAggregateError(f"Unsupported aggregate type: {record.aggregate_type}")
        payload = decode_event(record)
        return handler(record, payload)

    # ------------------------------------------------------------------
    # Engine resolution
    # ------------------------------------------------------------------
    def resolve_engine_code(self, record: OutboxRecord, payload: Any = None) -> str:
        """Payload engine code wins; otherwise use the owning form's engine."""
        if payload is None:
            payload = decode_event(record)
        if payload.engine_code:
            return payload.engine_code

        form_id = self._owning_form_id(record, payload)
        engine_code = self.entities.get_form_engine_code_for_form(record.workspace_id, form_id)
        if not engine_code:
            raise EngineResolutionError(f"Form engine not found for form '{form_id}'")
        return engine_code

    def _owning_form_id(self, record: OutboxRecord, payload: Any) -> str:
        if record.aggregate_type == AGGREGATE_FORM_VERSION:
            if payload.form_id:
                return payload.form_id
            form_version = self.entities.get_form_version(record.workspace_id, record.aggregate_id)
            if form_version is None:
                raise EngineResolutionError(f"Form version not found for aggregate id '{record.aggregate_id}'")
            return form_version.form_id
        if record.aggregate_type == AGGREGATE_SUBMISSION:
            submission = self.entities.get_submission(record.workspace_id, record.aggregate_id)
            if submission is None:
                raise EngineResolutionError(f"Submission not found for aggregate id '{record.aggregate_id}'")
            return submission.form_id
        raise UnsupportedAggregateError(f"Unsupported aggregate type: {record.aggregate_type}")

    def _resolve_adapter(self, record: OutboxRecord, payload: Any) -> FormEngineAdapter:
        engine_code = self.resolve_engine_code(record, payload)
        return self.resolver.resolve(engine_code)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def _sync_form_version(self, record: OutboxRecord, payload: Any) -> ProvisionResult:
        adapter = self._resolve_adapter(record, payload)
        workspace_id, form_version_id = record.workspace_id, record.aggregate_id

        self.entities.update_form_version_sync(
            workspace_id,
            form_version_id,
            self.system_actor_id,
            engine_sync_status=SYNC_PROVISIONING,
            engine_sync_error=None,
        )

        form_id = payload.form_id
        if not form_id:
            form_version = self.entities.get_form_version(workspace_id, form_version_id)
            if form_version is None:
                raise EngineResolutionError(f"Form version not found for aggregate id '{form_version_id}'")
            form_id = form_version.form_id

        result = self._call_adapter(
            adapter.create_form_version_schema,
            FormVersionProvisionInput(
                form_version_id=form_version_id,
                workspace_id=workspace_id,
                form_id=form_id,
            ),
        )

        self.entities.update_form_version_sync(
            workspace_id,
            form_version_id,
            self.system_actor_id,
            engine_schema_ref=result.engine_ref,
            engine_sync_status=SYNC_READY,
            engine_sync_error=None,
        )
        logger.info("Form version %s provisioned as %s", form_version_id, result.engine_ref)
        return result

    def _sync_submission(self, record: OutboxRecord, payload: Any) -> ProvisionResult:
        adapter = self._resolve_adapter(record, payload)
        workspace_id, submission_id = record.workspace_id, record.aggregate_id

        self.entities.update_submission_sync(
            workspace_id,
            submission_id,
            self.system_actor_id,
            engine_sync_status=SYNC_PROVISIONING,
            engine_sync_error=None,
        )

        form_version_id = payload.form_version_id
        if not form_version_id:
            submission = self.entities.get_submission(workspace_id, submission_id)
            if submission is None:
                raise EngineResolutionError(f"Submission not found for aggregate id '{submission_id}'")
            form_version_id = submission.form_version_id

        result = self._call_adapter(
            adapter.create_submission_record,
            SubmissionProvisionInput(
                submission_id=submission_id,
                workspace_id=workspace_id,
                form_version_id=form_version_id,
            ),
        )

        self.entities.update_submission_sync(
            workspace_id,
            submission_id,
            self.system_actor_id,
            engine_submission_ref=result.engine_ref,
            engine_sync_status=SYNC_READY,
            engine_sync_error=None,
        )
        logger.info("Submission %s provisioned as %s", submission_id, result.engine_ref)
        return result

    # ------------------------------------------------------------------
    # Adapter invocation
    # ------------------------------------------------------------------
    def _call_adapter(self, call: Callable[[Any], ProvisionResult], request: Any) -> ProvisionResult:
        if self.adapter_timeout is None:
            result = call(request)
        else:
            result = self._call_with_timeout(call, request)

        engine_ref = getattr(result, "engine_ref", None)
        if not isinstance(engine_ref, str) or not engine_ref.strip():
            raise InvalidEngineResponseError("Form engine returned no engine ref")
        return result

    def _call_with_timeout(self, call: Callable[[Any], ProvisionResult], request: Any) -> ProvisionResult:
        outcome: Dict[str, Any] = {}

        def _run() -> None:
            try:
                outcome["result"] = call(request)
            except Exception as exc:
                outcome["error"] = exc

        # Daemon thread: an abandoned call must never hold up interpreter exit.
        thread = threading.Thread(target=_run, name="engine-adapter", daemon=True)
        thread.start()
        thread.join(self.adapter_timeout)
        if thread.is_alive():
            abandoned = sum(1 for t in threading.enumerate() if t.name == "engine-adapter")
            logger.warning(
                "Form engine call abandoned after %ss (%s adapter call(s) still running)",
                self.adapter_timeout,
                abandoned,
            )
            raise AdapterTimeoutError(f"Form engine did not respond within {self.adapter_timeout:g}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["result"]


__all__ = ["EngineAdapterResolver", "SyncEngine"]
