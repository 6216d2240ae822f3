"""Explicit registry of installed form engines.

Engines are registered by code at startup; nothing is discovered from the
filesystem. The registry instance is handed to the sync engine, so tests and
alternative deployments can install their own adapters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from soba.platform.engines.adapter import FormEngineAdapter
from soba.platform.engines.plugin_config import PluginConfigReader

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[PluginConfigReader], FormEngineAdapter]


class UnknownFormEngineError(LookupError):
    """Raised when no engine is installed for a code."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown form engine"


@dataclass(frozen=True)
class FormEngineDefinition:
    code: str
    name: str
    factory: AdapterFactory
    version: Optional[str] = None


@dataclass(frozen=True)
class FormEngineRecord:
    """Minimal view of a platform engine row used for invariant checks."""

    code: str
    is_active: bool
    is_default: bool


class FormEngineRegistry:
    def __init__(
        self,
        definitions: Iterable[FormEngineDefinition] = (),
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._definitions: Dict[str, FormEngineDefinition] = {}
        self._environ = environ
        for definition in definitions:
            self.register(definition)

    def register(self, definition: FormEngineDefinition) -> None:
        if definition.code in self._definitions:
            raise ValueError(f"Form engine '{definition.code}' is already registered")
        self._definitions[definition.code] = definition

    def get(self, engine_code: str) -> FormEngineDefinition:
        definition = self._definitions.get(engine_code)
        if definition is None:
            raise UnknownFormEngineError(f"No form engine plugin is installed for code '{engine_code}'")
        return definition

    def resolve(self, engine_code: str) -> FormEngineAdapter:
        """Build a fresh adapter for `engine_code`."""
        definition = self.get(engine_code)
        return definition.factory(PluginConfigReader(engine_code, self._environ))

    def catalog(self) -> List[dict]:
        return [
            {"code": d.code, "name": d.name, "version": d.version}
            for d in sorted(self._definitions.values(), key=lambda d: d.code)
        ]

    def __contains__(self, engine_code: object) -> bool:
        return engine_code in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def assert_form_engine_invariants(engines: Sequence[FormEngineRecord]) -> None:
    active = [engine for engine in engines if engine.is_active]
    if not active:
        raise ValueError("At least one active form engine is required")

    defaults = [engine for engine in engines if engine.is_default]
    if len(defaults) != 1:
        raise ValueError("Exactly one default form engine is required")

    if not defaults[0].is_active:
        raise ValueError("Default form engine must be active")


def build_default_registry(environ: Optional[Mapping[str, str]] = None) -> FormEngineRegistry:
    """Registry with every engine shipped in this package."""
    from soba.platform.engines.formio import FORMIO_V5

    registry = FormEngineRegistry([FORMIO_V5], environ=environ)
    logger.debug("Form engine registry built with %s", ", ".join(d["code"] for d in registry.catalog()))
    return registry


__all__ = [
    "FormEngineDefinition",
    "FormEngineRecord",
    "FormEngineRegistry",
    "UnknownFormEngineError",
    "assert_form_engine_invariants",
    "build_default_registry",
]
