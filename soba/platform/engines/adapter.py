"""Capability the sync engine needs from a downstream form engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class FormVersionProvisionInput:
    form_version_id: str
    workspace_id: str
    form_id: str


@dataclass(frozen=True)
class SubmissionProvisionInput:
    submission_id: str
    workspace_id: str
    form_version_id: str


@dataclass(frozen=True)
class ProvisionResult:
    """Opaque downstream identifier for the provisioned object."""

    engine_ref: str


class FormEngineAdapter(ABC):
    """
    Provisions form state in a downstream engine.

    Calls may be retried after a crash between the call and the outbox write,
    so implementations must tolerate seeing the same id twice.
    """

    @abstractmethod
    def create_form_version_schema(self, request: FormVersionProvisionInput) -> ProvisionResult:
        raise NotImplementedError

    @abstractmethod
    def create_submission_record(self, request: SubmissionProvisionInput) -> ProvisionResult:
        raise NotImplementedError


__all__ = [
    "FormEngineAdapter",
    "FormVersionProvisionInput",
    "ProvisionResult",
    "SubmissionProvisionInput",
]
