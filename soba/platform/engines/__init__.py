"""Form engine adapters and the registry that resolves them by code."""

from soba.platform.engines.adapter import (
    FormEngineAdapter,
    FormVersionProvisionInput,
    ProvisionResult,
    SubmissionProvisionInput,
)
from soba.platform.engines.plugin_config import PluginConfigError, PluginConfigReader
from soba.platform.engines.registry import (
    FormEngineDefinition,
    FormEngineRecord,
    FormEngineRegistry,
    UnknownFormEngineError,
    assert_form_engine_invariants,
    build_default_registry,
)

__all__ = [
    "FormEngineAdapter",
    "FormEngineDefinition",
    "FormEngineRecord",
    "FormEngineRegistry",
    "FormVersionProvisionInput",
    "PluginConfigError",
    "PluginConfigReader",
    "ProvisionResult",
    "SubmissionProvisionInput",
    "UnknownFormEngineError",
    "assert_form_engine_invariants",
    "build_default_registry",
]
