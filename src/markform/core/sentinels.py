"""
Sentinel markers for non-value answers.

``%SKIP%`` and ``%ABORT%`` (optionally followed by ``(reason)``) encode the
skipped and aborted states inside otherwise plain text. parse_sentinel is
the strict form used when reading documents; detect_sentinel is the lenient
form used to catch sentinel text smuggled into patch values.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..models.enums import AnswerState


SKIP_SENTINEL = "%SKIP%"
ABORT_SENTINEL = "%ABORT%"

_STRICT_PATTERN = re.compile(r'^%(?P<kind>SKIP|ABORT)%(?:\s+\((?P<reason>.*)\))?$', re.DOTALL)
_LENIENT_PATTERN = re.compile(
    r'^%\s*(?P<kind>skip|abort)\s*(?:[:(]\s*(?P<inner>.*?)\s*\)?\s*)?%(?:\s*\((?P<reason>.*)\))?$',
    re.IGNORECASE | re.DOTALL,
)

_STATES = {"SKIP": AnswerState.SKIPPED, "ABORT": AnswerState.ABORTED}


@dataclass(frozen=True)
class Sentinel:
    """A decoded sentinel: the state it encodes and the optional reason."""
    state: AnswerState
    reason: Optional[str] = None


def parse_sentinel(text: str) -> Optional[Sentinel]:
    """
    Decode ``%SKIP%``, ``%SKIP% (reason)``, ``%ABORT%`` or ``%ABORT% (reason)``.

    Returns None for anything else, including sentinels followed by text
    that is not a parenthesised reason.
    """
    if text is None:
        return None
    match = _STRICT_PATTERN.match(text.strip())
    if not match:
        return None
    reason = match.group("reason")
    if reason is not None:
        reason = reason.strip() or None
    return Sentinel(_STATES[match.group("kind")], reason)


def detect_sentinel(text: str) -> Optional[Sentinel]:
    """Case-insensitive detection, also accepting ``%SKIP:reason%`` and ``%SKIP(reason)%``."""
    if not isinstance(text, str):
        return None
    match = _LENIENT_PATTERN.match(text.strip())
    if not match:
        return None
    reason = match.group("inner") or match.group("reason")
    if reason is not None:
        reason = reason.strip() or None
    return Sentinel(_STATES[match.group("kind").upper()], reason)


def format_sentinel(state: AnswerState, reason: Optional[str] = None) -> str:
    """Encode a skipped or aborted state as sentinel text."""
    if state is AnswerState.SKIPPED:
        marker = SKIP_SENTINEL
    elif state is AnswerState.ABORTED:
        marker = ABORT_SENTINEL
    else:
        raise ValueError(f"No sentinel for state '{state}'")
    if reason:
        return f"{marker} ({reason})"
    return marker
