"""
Frontmatter Extraction Module

Splits the leading YAML metadata block from a form document and interprets
its ``markform`` section. The loaded mapping is kept whole, so keys the
form model does not understand survive a round trip.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from ..exceptions import FormatError, FormParseError
from ..models.enums import RunMode
from ..models.form import DEFAULT_SPEC_VERSION, FormMetadata, HarnessConfig, SourceSpan
from ..utils.config import MarkformSettings


logger = logging.getLogger(__name__)

# Accepted spellings of harness keys, mapped to HarnessConfig attributes.
_HARNESS_KEYS = {
    "max_turns": "max_turns",
    "maxTurns": "max_turns",
    "max_patches_per_turn": "max_patches_per_turn",
    "maxPatchesPerTurn": "max_patches_per_turn",
    "max_issues_per_turn": "max_issues_per_turn",
    "maxIssuesPerTurn": "max_issues_per_turn",
}


@dataclass
class FrontmatterResult:
    """Result container for frontmatter extraction.

    Attributes:
        has_frontmatter: True if a metadata block was present
        metadata: Parsed mapping (empty when absent)
        body: Document text after the block
        raw: Text between the delimiters
        end_offset: Offset in the original text where the body starts
        span: Location of the whole block, when present
    """
    has_frontmatter: bool
    metadata: Dict[str, Any] = field(default_factory=dict)
    body: str = ""
    raw: str = ""
    end_offset: int = 0
    span: Optional[SourceSpan] = None

    def __post_init__(self):
        if not isinstance(self.metadata, dict):
            raise ValueError(f"metadata must be a dictionary, got {type(self.metadata)}")


class FrontmatterExtractor:
    """Extractor for the YAML block delimited by ``---`` lines."""

    def __init__(self):
        self.open_pattern = re.compile(r'\A(?:\ufeff)?---[ \t]*\r?\n')
        self.close_pattern = re.compile(r'^---[ \t]*(?:\r?\n|\Z)', re.MULTILINE)

    def extract(self, content: str) -> FrontmatterResult:
        """Extract frontmatter from content.

        Args:
            content: Document text potentially starting with a metadata block

        Returns:
            FrontmatterResult with the parsed mapping and the body

        Raises:
            FormatError: If the block is never closed, is not valid YAML,
                or does not hold a mapping
        """
        if not isinstance(content, str):
            raise ValueError("Content must be a string")

        open_match = self.open_pattern.match(content)
        if not open_match:
            return FrontmatterResult(has_frontmatter=False, body=content)

        close_match = self.close_pattern.search(content, open_match.end())
        if not close_match:
            raise FormatError(
                "Frontmatter block opened with '---' is never closed",
                line_number=1,
                content_preview=content[:80],
            )

        raw = content[open_match.end():close_match.start()]
        try:
            metadata = yaml.safe_load(raw) if raw.strip() else {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            raise FormatError(
                f"Invalid YAML frontmatter: {getattr(e, 'problem', None) or e}",
                line_number=mark.line + 2 if mark is not None else None,
                content_preview=raw[:200],
                cause=e,
            ) from e

        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            raise FormatError(
                f"Frontmatter must be a mapping, got {type(metadata).__name__}",
                line_number=2,
                content_preview=raw[:200],
            )

        end_offset = close_match.end()
        span = SourceSpan(
            tag_type="frontmatter",
            start=0,
            end=end_offset,
            inner_start=open_match.end(),
            inner_end=close_match.start(),
            start_line=1,
            end_line=content.count("\n", 0, close_match.start()) + 1,
        )
        logger.debug(f"Extracted frontmatter with {len(metadata)} top-level keys")
        return FrontmatterResult(
            has_frontmatter=True,
            metadata=metadata,
            body=content[end_offset:],
            raw=raw,
            end_offset=end_offset,
            span=span,
        )


def parse_harness_config(raw: Any) -> Optional[HarnessConfig]:
    """Read numeric harness limits; other keys and values are ignored."""
    if not isinstance(raw, dict):
        return None
    config = HarnessConfig()
    for key, value in raw.items():
        attr = _HARNESS_KEYS.get(key)
        if attr and isinstance(value, int) and not isinstance(value, bool):
            setattr(config, attr, value)
    return None if config.is_empty() else config


def build_form_metadata(frontmatter: Dict[str, Any], settings: MarkformSettings) -> FormMetadata:
    """
    Interpret a frontmatter mapping.

    Raises:
        FormParseError: for an unknown ``run_mode`` or mistyped roles.
    """
    section = frontmatter.get("markform")
    if not isinstance(section, dict):
        section = {}

    run_mode = None
    raw_run_mode = section.get("run_mode")
    if raw_run_mode is not None:
        try:
            run_mode = RunMode(raw_run_mode)
        except ValueError:
            raise FormParseError(
                f"Invalid run_mode: '{raw_run_mode}'. Must be one of: interactive, fill, research"
            ) from None

    roles = frontmatter.get("roles", section.get("roles"))
    if roles is None:
        roles = list(settings.default_roles)
    elif not isinstance(roles, list) or not all(isinstance(role, str) for role in roles):
        raise FormParseError("Frontmatter 'roles' must be a list of strings")

    role_instructions = frontmatter.get("role_instructions", section.get("role_instructions"))
    if role_instructions is None:
        role_instructions = dict(settings.default_role_instructions)
    elif not isinstance(role_instructions, dict):
        raise FormParseError("Frontmatter 'role_instructions' must be a mapping")

    description = section.get("description")
    return FormMetadata(
        spec_version=str(section.get("spec", DEFAULT_SPEC_VERSION)),
        roles=list(roles),
        role_instructions={str(key): str(value) for key, value in role_instructions.items()},
        harness=parse_harness_config(section.get("harness")),
        run_mode=run_mode,
        description=description if isinstance(description, str) else None,
        extra=frontmatter,
    )
