"""Versioned payload schemas for outbox events.

Every aggregate type has exactly one current payload schema. Producers call
`encode_payload` before enqueueing (the engine code is mandatory there);
the sync engine calls `decode_event` on claimed records. Payloads are
camelCase JSON on the wire and snake_case attributes in Python.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from soba.core.errors import ValidationError
from soba.core.forms.events import AGGREGATE_FORM_VERSION, AGGREGATE_SUBMISSION

REQUIRE_ENGINE_CODE = "require_engine_code"


class EventPayloadError(ValidationError):
    """Raised when an event payload does not match its schema."""


class _BasePayload(BaseModel):
    """Fields shared by every form-engine payload."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    # Name of the attribute holding the aggregate id.
    aggregate_field: ClassVar[str]

    engine_code: Optional[str] = Field(
        default=None,
        alias="engineCode",
        description="Engine pinned at enqueue time; routing target for the sync engine.",
    )

    @field_validator("engine_code", mode="before")
    @classmethod
    def _blank_engine_code_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def _engine_code_when_required(self, info: ValidationInfo):
        if info.context and info.context.get(REQUIRE_ENGINE_CODE) and not self.engine_code:
            raise ValueError("engineCode is required")
        return self

    @property
    def aggregate_id(self) -> str:
        return getattr(self, self.aggregate_field)

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON dict stored on the outbox record."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FormVersionCreatePayload(_BasePayload):
    """Payload for `form_engine.<engineCode>.form_version.create`."""

    aggregate_field: ClassVar[str] = "form_version_id"

    form_version_id: str = Field(alias="formVersionId", min_length=1)
    form_id: Optional[str] = Field(
        default=None,
        alias="formId",
        min_length=1,
        description="Owning form, denormalized to avoid a lookup while processing.",
    )


class SubmissionCreatePayload(_BasePayload):
    """Payload for `form_engine.<engineCode>.submission.create`."""

    aggregate_field: ClassVar[str] = "submission_id"

    submission_id: str = Field(alias="submissionId", min_length=1)
    form_version_id: Optional[str] = Field(
        default=None,
        alias="formVersionId",
        min_length=1,
        description="Form version the submission was made against.",
    )


PAYLOAD_SCHEMAS: Dict[str, Type[_BasePayload]] = {
    AGGREGATE_FORM_VERSION: FormVersionCreatePayload,
    AGGREGATE_SUBMISSION: SubmissionCreatePayload,
}


class QueueEvent(BaseModel):
    """Enqueue-time event shape (also the shape of a claimed item)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    topic: str = Field(min_length=1)
    aggregate_type: str = Field(alias="aggregateType", min_length=1)
    aggregate_id: str = Field(alias="aggregateId", min_length=1)
    workspace_id: str = Field(alias="workspaceId", min_length=1)
    payload: Dict[str, Any]
    actor_id: Optional[str] = Field(default=None, alias="actorId")


def schema_for(aggregate_type: str) -> Type[_BasePayload]:
    schema = PAYLOAD_SCHEMAS.get(aggregate_type)
    if schema is None:
        raise EventPayloadError(f"Unsupported aggregate type: {aggregate_type}")
    return schema


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _validate(aggregate_type: str, payload: Any, *, require_engine_code: bool) -> _BasePayload:
    schema = schema_for(aggregate_type)
    if not isinstance(payload, dict):
        raise EventPayloadError(f"Invalid {aggregate_type} payload: expected an object")
    try:
        return schema.model_validate(payload, context={REQUIRE_ENGINE_CODE: require_engine_code})
    except PydanticValidationError as exc:
        raise EventPayloadError(f"Invalid {aggregate_type} payload: {_describe(exc)}") from exc


def encode_payload(aggregate_type: str, payload: Any) -> Dict[str, Any]:
    """Validate a producer payload and return its canonical JSON form."""
    return _validate(aggregate_type, payload, require_engine_code=True).to_payload()


def decode_payload(aggregate_type: str, payload: Any) -> _BasePayload:
    """Parse a stored payload; the engine code may be absent on read."""
    return _validate(aggregate_type, payload, require_engine_code=False)


def decode_event(record) -> _BasePayload:
    """Parse a claimed record's payload and check it targets the record's aggregate."""
    parsed = decode_payload(record.aggregate_type, record.payload)
    if parsed.aggregate_id != record.aggregate_id:
        raise EventPayloadError(
            f"Payload {parsed.aggregate_field} '{parsed.aggregate_id}' does not match "
            f"aggregate id '{record.aggregate_id}'"
        )
    return parsed


__all__ = [
    "EventPayloadError",
    "FormVersionCreatePayload",
    "PAYLOAD_SCHEMAS",
    "QueueEvent",
    "SubmissionCreatePayload",
    "decode_event",
    "decode_payload",
    "encode_payload",
    "schema_for",
]
