"""
Main configuration manager for Markform.

ConfigManager merges built-in defaults, an optional JSON settings file and
``MARKFORM_*`` environment variables, validates the result with jsonschema
and exposes it as MarkformSettings.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ...exceptions.config_exceptions import ConfigurationError
from .environment import EnvironmentHandler
from .paths import ConfigPaths
from .schema_validation import SchemaValidator
from .settings import MarkformSettings


logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Configuration manager for Markform.

    Handles loading, validation, and merging of configuration from:
    - Built-in defaults
    - A JSON settings file
    - Environment variables
    """

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root: Optional[Union[str, Path]] = None,
        load_env: bool = False,
        environ: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize the ConfigManager.

        Args:
            config_file: Path to the settings file (default: markform.config.json)
            project_root: Directory relative paths resolve against (default: cwd)
            load_env: Whether to load a .env file from the project root first
            environ: Environment mapping to read overrides from (default: os.environ)
        """
        self.paths = ConfigPaths()
        self.project_root = Path(project_root or os.getcwd()).resolve()
        self.config_file = config_file or self.paths.DEFAULT_CONFIG_FILE
        self.load_env = load_env
        self.environ = environ
        self.env_handler = EnvironmentHandler(self.paths.ENV_PREFIX)
        self.schema_validator = SchemaValidator()
        self.logger = logger
        self._settings: Optional[MarkformSettings] = None

    def resolve_path(self, path: Union[str, Path]) -> Path:
        path_obj = Path(path)
        if path_obj.is_absolute():
            return path_obj
        return (self.project_root / path_obj).resolve()

    def load_file_config(self) -> Dict[str, Any]:
        """Load the settings file; a missing default file is not an error."""
        path = self.resolve_path(self.config_file)
        if not path.is_file():
            if self.config_file != self.paths.DEFAULT_CONFIG_FILE:
                raise ConfigurationError(
                    f"Configuration file not found: {path}",
                    config_file=str(path),
                    suggestions=["Check the path passed as config_file"],
                )
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in configuration file: {e}", config_file=str(path)
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain a JSON object", config_file=str(path))
        self.logger.debug(f"Loaded configuration file {path}")
        return data

    def load(self) -> MarkformSettings:
        """Merge, validate and return settings."""
        if self.load_env:
            self.env_handler.load_env_file(self.resolve_path(self.paths.ENV_FILE))

        config = MarkformSettings().to_dict()
        config.update(self.load_file_config())
        config = self.env_handler.apply_environment_overrides(config, self.environ)

        self.schema_validator.validate_config_against_schema(config, str(self.config_file))
        try:
            self._settings = MarkformSettings.from_dict(config)
        except ValueError as e:
            raise ConfigurationError(str(e), config_file=str(self.config_file)) from e
        return self._settings

    @property
    def settings(self) -> MarkformSettings:
        if self._settings is None:
            return self.load()
        return self._settings


_default_settings: Optional[MarkformSettings] = None


def get_settings() -> MarkformSettings:
    """Settings from defaults and environment, loaded once per process."""
    global _default_settings
    if _default_settings is None:
        _default_settings = ConfigManager().load()
    return _default_settings


def reset_settings() -> None:
    """Forget cached settings so the next get_settings() reloads them."""
    global _default_settings
    _default_settings = None
