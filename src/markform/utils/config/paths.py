"""
Configuration file names and constants for Markform.
"""

from dataclasses import dataclass


@dataclass
class ConfigPaths:
    """Configuration file paths and constants."""

    DEFAULT_CONFIG_FILE: str = "markform.config.json"
    ENV_FILE: str = ".env"
    ENV_PREFIX: str = "MARKFORM_"
