"""Tests for settings loading and validation."""

import json
import os

import pytest

from markform.exceptions.config_exceptions import (
    ConfigurationError,
    ConfigurationValidationError,
    EnvironmentVariableError,
)
from markform.utils.config import (
    ConfigManager,
    EnvironmentHandler,
    MarkformSettings,
    SchemaValidator,
    get_settings,
    reset_settings,
)


def write_config(tmp_path, data, name="markform.config.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestConfigManager:
    """Tests for merging defaults, file and environment."""

    def test_defaults_without_file(self, tmp_path):
        settings = ConfigManager(project_root=tmp_path, environ={}).load()
        assert settings == MarkformSettings()
        assert settings.spec_version == "MF/0.1"
        assert settings.default_roles == ["user", "agent"]
        assert settings.serializer_mode == "full"

    def test_file_values(self, tmp_path):
        write_config(tmp_path, {"serializer_mode": "preserve", "default_roles": ["agent"]})
        settings = ConfigManager(project_root=tmp_path, environ={}).load()
        assert settings.serializer_mode == "preserve"
        assert settings.default_roles == ["agent"]

    def test_environment_overrides_file(self, tmp_path):
        write_config(tmp_path, {"spec_version": "MF/0.2", "log_level": "INFO"})
        environ = {
            "MARKFORM_SPEC_VERSION": "MF/1.0",
            "MARKFORM_DEFAULT_ROLES": "reviewer, agent",
            "MARKFORM_LOG_LEVEL": "debug",
            "MARKFORM_ROLE_INSTRUCTIONS": '{"reviewer": "Check every answer."}',
        }
        settings = ConfigManager(project_root=tmp_path, environ=environ).load()
        assert settings.spec_version == "MF/1.0"
        assert settings.default_roles == ["reviewer", "agent"]
        assert settings.log_level == "DEBUG"
        assert settings.default_role_instructions == {"reviewer": "Check every answer."}

    def test_explicit_file_path(self, tmp_path):
        path = write_config(tmp_path, {"log_format": "json"}, name="custom.json")
        settings = ConfigManager(config_file=path, environ={}).load()
        assert settings.log_format == "json"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as excinfo:
            ConfigManager(config_file="absent.json", project_root=tmp_path, environ={}).load()
        assert excinfo.value.suggestions

    def test_invalid_json(self, tmp_path):
        (tmp_path / "markform.config.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ConfigManager(project_root=tmp_path, environ={}).load()

    def test_non_object_file(self, tmp_path):
        write_config(tmp_path, ["full"])
        with pytest.raises(ConfigurationError):
            ConfigManager(project_root=tmp_path, environ={}).load()

    @pytest.mark.parametrize("data", [
        {"spec_version": "0.1"},
        {"serializer_mode": "pretty"},
        {"default_roles": []},
        {"colour": "blue"},
    ])
    def test_schema_violations(self, tmp_path, data):
        write_config(tmp_path, data)
        with pytest.raises(ConfigurationValidationError) as excinfo:
            ConfigManager(project_root=tmp_path, environ={}).load()
        assert excinfo.value.validation_errors

    def test_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("MARKFORM_SERIALIZER_MODE=preserve\n", encoding="utf-8")
        try:
            settings = ConfigManager(project_root=tmp_path, load_env=True).load()
        finally:
            os.environ.pop("MARKFORM_SERIALIZER_MODE", None)
        assert settings.serializer_mode == "preserve"


class TestEnvironmentHandler:
    """Tests for environment value conversion."""

    def test_conversions(self):
        handler = EnvironmentHandler()
        assert handler.convert_env_value("a, b,,c", "list") == ["a", "b", "c"]
        assert handler.convert_env_value(" info ", "upper") == "INFO"
        assert handler.convert_env_value('{"a": "b"}', "json") == {"a": "b"}
        assert handler.convert_env_value(" MF/0.1 ") == "MF/0.1"

    def test_bad_json(self):
        with pytest.raises(EnvironmentVariableError) as excinfo:
            EnvironmentHandler().apply_environment_overrides({}, {"MARKFORM_ROLE_INSTRUCTIONS": "{oops"})
        assert excinfo.value.variable_name == "MARKFORM_ROLE_INSTRUCTIONS"

    def test_empty_values_are_ignored(self):
        config = {"serializer_mode": "full"}
        result = EnvironmentHandler().apply_environment_overrides(config, {"MARKFORM_SERIALIZER_MODE": ""})
        assert result == config

    def test_missing_env_file(self, tmp_path):
        assert EnvironmentHandler().load_env_file(tmp_path / ".env") is False


class TestSettings:
    """Tests for settings values and the process-wide cache."""

    def test_invalid_serializer_mode(self):
        with pytest.raises(ValueError):
            MarkformSettings(serializer_mode="pretty")

    def test_from_dict_ignores_unknown_keys(self):
        settings = MarkformSettings.from_dict({"log_level": "ERROR", "other": 1})
        assert settings.log_level == "ERROR"

    def test_schema_validator_collects_every_error(self):
        errors = SchemaValidator().collect_errors({"spec_version": "x", "log_level": "LOUD"})
        assert len(errors) == 2
        assert errors[0].startswith("log_level:")

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("MARKFORM_SERIALIZER_MODE", "preserve")
        assert get_settings() is first
        reset_settings()
        assert get_settings().serializer_mode == "preserve"
