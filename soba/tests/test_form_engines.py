"""Tests for the form engine registry, plugin config and the Form.io adapter."""

import pytest

pytestmark = pytest.mark.unit

from soba.platform.engines import (
    FormEngineDefinition,
    FormEngineRecord,
    FormEngineRegistry,
    FormVersionProvisionInput,
    PluginConfigError,
    PluginConfigReader,
    SubmissionProvisionInput,
    UnknownFormEngineError,
    assert_form_engine_invariants,
    build_default_registry,
)
from soba.platform.engines.formio import FormioEngineAdapter
from soba.platform.engines.plugin_config import normalize_key
from soba.tests.conftest import FORMIO_ENV


class TestPluginConfigReader:
    def test_keys_are_prefixed_and_normalized(self):
        reader = PluginConfigReader("formio-v5", environ={})
        assert reader.env_key("api base-url") == "PLUGIN_FORMIO_V5_API_BASE_URL"
        assert normalize_key(" my.plugin ") == "MY_PLUGIN"

    def test_required_and_optional(self):
        reader = PluginConfigReader("demo", environ={"PLUGIN_DEMO_HOST": "db", "PLUGIN_DEMO_EMPTY": "  "})
        assert reader.get_required("host") == "db"
        assert reader.get_optional("empty") is None
        assert reader.get_optional("missing", "fallback") == "fallback"
        with pytest.raises(PluginConfigError, match="PLUGIN_DEMO_MISSING"):
            reader.get_required("missing")

    def test_typed_getters(self):
        reader = PluginConfigReader(
            "demo",
            environ={
                "PLUGIN_DEMO_ENABLED": "Yes",
                "PLUGIN_DEMO_PORT": "8080",
                "PLUGIN_DEMO_TAGS": "a, b,,c ",
                "PLUGIN_DEMO_BROKEN": "maybe",
            },
        )
        assert reader.get_bool("enabled") is True
        assert reader.get_int("port") == 8080
        assert reader.get_csv("tags") == ["a", "b", "c"]
        with pytest.raises(PluginConfigError, match="Invalid boolean"):
            reader.get_bool("broken")
        with pytest.raises(PluginConfigError, match="Invalid integer"):
            reader.get_int("broken")


class _StaticAdapter:
    def __init__(self, config):
        self.config = config


class TestRegistry:
    def test_resolve_builds_adapter_with_plugin_config(self):
        registry = FormEngineRegistry(
            [FormEngineDefinition(code="demo", name="Demo", factory=_StaticAdapter)],
            environ={"PLUGIN_DEMO_TOKEN": "t"},
        )
        adapter = registry.resolve("demo")
        assert isinstance(adapter, _StaticAdapter)
        assert adapter.config.get_required("token") == "t"
        assert "demo" in registry
        assert len(registry) == 1

    def test_unknown_code(self):
        registry = FormEngineRegistry()
        with pytest.raises(UnknownFormEngineError, match="No form engine plugin is installed for code 'nope'"):
            registry.resolve("nope")

    def test_duplicate_code_rejected(self):
        definition = FormEngineDefinition(code="demo", name="Demo", factory=_StaticAdapter)
        registry = FormEngineRegistry([definition])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(definition)

    def test_default_registry_catalog(self):
        registry = build_default_registry(environ={})
        assert registry.catalog() == [{"code": "formio-v5", "name": "Form.io v5", "version": "v5"}]


class TestFormioAdapter:
    def test_refs_are_derived_from_ids(self):
        adapter = build_default_registry(environ=FORMIO_ENV).resolve("formio-v5")
        assert isinstance(adapter, FormioEngineAdapter)
        assert adapter.config.api_base_url == "http://formio.test"
        assert adapter.config.project_path is None

        schema = adapter.create_form_version_schema(
            FormVersionProvisionInput(form_version_id="fv-1", workspace_id="ws-1", form_id="form-1")
        )
        submission = adapter.create_submission_record(
            SubmissionProvisionInput(submission_id="sub-1", workspace_id="ws-1", form_version_id="fv-1")
        )
        assert schema.engine_ref == "formio-schema-fv-1"
        assert submission.engine_ref == "formio-submission-sub-1"

    def test_missing_settings_fail_resolution(self):
        registry = build_default_registry(environ={})
        with pytest.raises(PluginConfigError, match="PLUGIN_FORMIO_V5_API_BASE_URL"):
            registry.resolve("formio-v5")


class TestEngineInvariants:
    def test_valid_set(self):
        assert_form_engine_invariants(
            [FormEngineRecord("formio-v5", True, True), FormEngineRecord("legacy", False, False)]
        )

    @pytest.mark.parametrize(
        "engines, message",
        [
            ([FormEngineRecord("a", False, True)], "At least one active"),
            ([FormEngineRecord("a", True, False)], "Exactly one default"),
            ([FormEngineRecord("a", True, True), FormEngineRecord("b", True, True)], "Exactly one default"),
            ([FormEngineRecord("a", True, False), FormEngineRecord("b", False, True)], "must be active"),
        ],
    )
    def test_violations(self, engines, message):
        with pytest.raises(ValueError, match=message):
            assert_form_engine_invariants(engines)
