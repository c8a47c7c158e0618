"""
Schema validation for configuration management.

Validates merged settings mappings with jsonschema and reports every
violation in one ConfigurationValidationError.
"""

import logging
from typing import Any, Dict, List, Optional

import jsonschema

from ...exceptions.config_exceptions import ConfigurationValidationError
from .settings import SETTINGS_SCHEMA


logger = logging.getLogger(__name__)


class SchemaValidator:
    """
    Schema validation for configuration management.

    Handles validation against the settings schema with user-friendly
    error reporting.
    """

    def __init__(self, schema: Optional[Dict[str, Any]] = None) -> None:
        self.schema = schema or SETTINGS_SCHEMA
        self.logger = logger
        validator_class = jsonschema.validators.validator_for(self.schema)
        validator_class.check_schema(self.schema)
        self._validator = validator_class(self.schema)

    def collect_errors(self, config: Dict[str, Any]) -> List[str]:
        """Return every violation as a ``path: message`` string."""
        errors = []
        for error in sorted(self._validator.iter_errors(config), key=lambda e: list(e.absolute_path)):
            path = ".".join(str(part) for part in error.absolute_path) or "<root>"
            errors.append(f"{path}: {error.message}")
        return errors

    def validate_config_against_schema(
        self,
        config: Dict[str, Any],
        config_file: str = "unknown"
    ) -> None:
        """
        Validate configuration against the settings schema.

        Raises:
            ConfigurationValidationError: If validation fails
        """
        errors = self.collect_errors(config)
        if errors:
            self.logger.error(f"Configuration validation failed for {config_file}: {errors}")
            raise ConfigurationValidationError(
                f"Configuration validation failed: {errors[0]}",
                config_file=config_file,
                validation_errors=errors,
            )
