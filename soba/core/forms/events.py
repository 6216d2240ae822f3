"""Forms domain event catalog and form-engine topic naming."""

from __future__ import annotations

AGGREGATE_FORM_VERSION = "form_version"
AGGREGATE_SUBMISSION = "submission"

FORM_VERSION_CREATE = "form_version.create"
SUBMISSION_CREATE = "submission.create"

TOPIC_PREFIX = "form_engine"


def build_form_version_create_topic(engine_code: str) -> str:
    return f"{TOPIC_PREFIX}.{engine_code}.{FORM_VERSION_CREATE}"


def build_submission_create_topic(engine_code: str) -> str:
    return f"{TOPIC_PREFIX}.{engine_code}.{SUBMISSION_CREATE}"


EVENT_CATALOG = {
    AGGREGATE_FORM_VERSION: {
        "version": "v1",
        "topic": f"{TOPIC_PREFIX}.<engineCode>.{FORM_VERSION_CREATE}",
        "payload": {
            "formVersionId": "str",
            "engineCode": "str",
            "formId": "str?",
        },
    },
    AGGREGATE_SUBMISSION: {
        "version": "v1",
        "topic": f"{TOPIC_PREFIX}.<engineCode>.{SUBMISSION_CREATE}",
        "payload": {
            "submissionId": "str",
            "engineCode": "str",
            "formVersionId": "str?",
        },
    },
}

__all__ = [
    "AGGREGATE_FORM_VERSION",
    "AGGREGATE_SUBMISSION",
    "EVENT_CATALOG",
    "build_form_version_create_topic",
    "build_submission_create_topic",
]
