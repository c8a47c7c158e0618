"""
Settings model for Markform.

MarkformSettings carries the values the core needs from outside: the
format version written by the serializer, the default roles and role
instructions applied when a document declares none, the default
serializer mode and logging preferences.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


logger = logging.getLogger(__name__)

DEFAULT_ROLE_INSTRUCTIONS: Dict[str, str] = {
    "user": "Fill in the fields assigned to you. Leave a field empty if it does not apply.",
    "agent": "Complete the fields assigned to the agent. Skip a field with a reason when it cannot be answered.",
}

SERIALIZER_MODES = ("full", "preserve")


@dataclass
class MarkformSettings:
    """Resolved configuration values."""
    spec_version: str = "MF/0.1"
    default_roles: List[str] = field(default_factory=lambda: ["user", "agent"])
    default_role_instructions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ROLE_INSTRUCTIONS)
    )
    serializer_mode: str = "full"
    log_level: str = "WARNING"
    log_format: str = "standard"

    def __post_init__(self):
        if not self.spec_version:
            raise ValueError("spec_version cannot be empty")
        if self.serializer_mode not in SERIALIZER_MODES:
            raise ValueError(
                f"serializer_mode must be one of {', '.join(SERIALIZER_MODES)}, got '{self.serializer_mode}'"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarkformSettings':
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        return cls(**known)


# JSON Schema for the settings mapping; ConfigManager validates merged
# settings against it before building MarkformSettings.
SETTINGS_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "spec_version": {"type": "string", "pattern": r"^MF/\d+\.\d+$"},
        "default_roles": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 1,
            "uniqueItems": True,
        },
        "default_role_instructions": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "serializer_mode": {"enum": list(SERIALIZER_MODES)},
        "log_level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "log_format": {"enum": ["standard", "detailed", "json"]},
    },
    "additionalProperties": False,
}
