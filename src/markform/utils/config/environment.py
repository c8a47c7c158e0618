"""
Environment variable handling for configuration management.

Maps ``MARKFORM_*`` environment variables onto settings keys, with type
conversion. A ``.env`` file is loaded through python-dotenv on request.
"""

import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

from ...exceptions.config_exceptions import EnvironmentVariableError


logger = logging.getLogger(__name__)


class EnvironmentHandler:
    """
    Environment variable handling for configuration management.

    Handles environment variable overrides, type conversion, and .env loading.
    """

    def __init__(self, prefix: str = "MARKFORM_") -> None:
        self.prefix = prefix
        self.logger = logger

    def get_env_mapping(self) -> Dict[str, Dict[str, str]]:
        """
        Get mapping of environment variable names to settings keys and types.

        Returns:
            Dictionary mapping env var names to ``{"key": ..., "type": ...}``
        """
        return {
            f"{self.prefix}SPEC_VERSION": {"key": "spec_version", "type": "string"},
            f"{self.prefix}DEFAULT_ROLES": {"key": "default_roles", "type": "list"},
            f"{self.prefix}ROLE_INSTRUCTIONS": {"key": "default_role_instructions", "type": "json"},
            f"{self.prefix}SERIALIZER_MODE": {"key": "serializer_mode", "type": "string"},
            f"{self.prefix}LOG_LEVEL": {"key": "log_level", "type": "upper"},
            f"{self.prefix}LOG_FORMAT": {"key": "log_format", "type": "string"},
        }

    def convert_env_value(self, value: str, target_type: str = 'string', name: Optional[str] = None) -> Any:
        """
        Convert environment variable string to appropriate Python type.

        Raises:
            EnvironmentVariableError: If conversion fails
        """
        if target_type == 'list':
            return [item.strip() for item in value.split(",") if item.strip()]
        if target_type == 'upper':
            return value.strip().upper()
        if target_type == 'json':
            try:
                return json.loads(value)
            except json.JSONDecodeError as e:
                raise EnvironmentVariableError(
                    f"Failed to parse environment variable {name} as JSON: {e}", name
                ) from e
        return value.strip()

    def apply_environment_overrides(
        self,
        config: Dict[str, Any],
        environ: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Apply environment variable overrides to configuration.

        Args:
            config: Base configuration dictionary
            environ: Environment to read (default: os.environ)

        Returns:
            Configuration with environment overrides applied
        """
        env = os.environ if environ is None else environ
        result = deepcopy(config)
        for env_var, target in self.get_env_mapping().items():
            env_value = env.get(env_var)
            if env_value is None or env_value == "":
                continue
            result[target["key"]] = self.convert_env_value(env_value, target["type"], env_var)
            self.logger.debug(f"Applied environment override: {env_var} -> {target['key']}")
        return result

    def load_env_file(self, path: Union[str, Path]) -> bool:
        """Load a .env file if it exists; returns whether anything was loaded."""
        env_path = Path(path)
        if not env_path.is_file():
            self.logger.debug(f"No environment file at {env_path}")
            return False
        loaded = load_dotenv(env_path, override=False)
        self.logger.debug(f"Loaded environment file {env_path}")
        return loaded
