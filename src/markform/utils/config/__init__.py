"""
Configuration management for Markform.

Components:
- MarkformSettings: resolved settings values
- ConfigManager: defaults, JSON file and environment merging
- EnvironmentHandler: MARKFORM_* overrides and .env loading
- SchemaValidator: jsonschema validation of settings
"""

from .paths import ConfigPaths
from .settings import MarkformSettings, SETTINGS_SCHEMA, DEFAULT_ROLE_INSTRUCTIONS
from .schema_validation import SchemaValidator
from .environment import EnvironmentHandler
from .manager import ConfigManager, get_settings, reset_settings

__all__ = [
    'ConfigPaths',
    'MarkformSettings',
    'SETTINGS_SCHEMA',
    'DEFAULT_ROLE_INSTRUCTIONS',
    'SchemaValidator',
    'EnvironmentHandler',
    'ConfigManager',
    'get_settings',
    'reset_settings',
]
