"""Form.io v5 engine adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from soba.platform.engines.adapter import (
    FormEngineAdapter,
    FormVersionProvisionInput,
    ProvisionResult,
    SubmissionProvisionInput,
)
from soba.platform.engines.plugin_config import PluginConfigReader
from soba.platform.engines.registry import FormEngineDefinition

FORMIO_V5_CODE = "formio-v5"


@dataclass(frozen=True)
class FormioV5Config:
    api_base_url: str
    admin_api_url: str
    render_api_url: str
    admin_username: str
    admin_password: str
    manager_username: str
    manager_password: str
    project_path: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_reader(cls, config: PluginConfigReader) -> "FormioV5Config":
        return cls(
            api_base_url=config.get_required("API_BASE_URL"),
            admin_api_url=config.get_required("ADMIN_API_URL"),
            render_api_url=config.get_required("RENDER_API_URL"),
            admin_username=config.get_required("ADMIN_USERNAME"),
            admin_password=config.get_required("ADMIN_PASSWORD"),
            manager_username=config.get_required("MANAGER_USERNAME"),
            manager_password=config.get_required("MANAGER_PASSWORD"),
            project_path=config.get_optional("PROJECT_PATH"),
            version=config.get_optional("VERSION"),
        )


def _ref(prefix: str, object_id: str) -> str:
    return f"{prefix}-{object_id}"


class FormioEngineAdapter(FormEngineAdapter):
    """
    Provisioning for Form.io v5.

    Refs are derived from our own ids, so repeating a call yields the same ref.
    """

    def __init__(self, config: FormioV5Config) -> None:
        self.config = config

    def create_form_version_schema(self, request: FormVersionProvisionInput) -> ProvisionResult:
        return ProvisionResult(engine_ref=_ref("formio-schema", request.form_version_id))

    def create_submission_record(self, request: SubmissionProvisionInput) -> ProvisionResult:
        return ProvisionResult(engine_ref=_ref("formio-submission", request.submission_id))


def create_formio_adapter(config: PluginConfigReader) -> FormioEngineAdapter:
    return FormioEngineAdapter(FormioV5Config.from_reader(config))


FORMIO_V5 = FormEngineDefinition(
    code=FORMIO_V5_CODE,
    name="Form.io v5",
    version="v5",
    factory=create_formio_adapter,
)

__all__ = ["FORMIO_V5", "FORMIO_V5_CODE", "FormioEngineAdapter", "FormioV5Config", "create_formio_adapter"]
