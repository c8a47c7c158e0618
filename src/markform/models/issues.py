"""
Validator and inspect issue types.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .enums import FieldPriority, IssueReason, IssueScope, IssueSeverity


def priority_tier(field_priority: FieldPriority, reason: IssueReason, required: bool = False) -> int:
    """
    Map a field priority and an issue reason to a tier from 1 (most urgent) to 5.

    The score is the field weight plus the reason score; an incomplete
    checkbox set on a required field scores one higher.
    """
    score = field_priority.weight + reason.score
    if reason is IssueReason.CHECKBOX_INCOMPLETE and required:
        score += 1
    if score >= 5:
        return 1
    if score >= 4:
        return 2
    if score >= 3:
        return 3
    if score >= 2:
        return 4
    return 5


@dataclass(frozen=True)
class Issue:
    """
    A finding about the response store.

    ``ref`` is the field id, ``field.option`` for options, or
    ``field[row].column`` for table cells.
    """
    ref: str
    scope: IssueScope
    reason: IssueReason
    severity: IssueSeverity
    priority: int
    message: str
    field_id: Optional[str] = None
    blocked_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "ref": self.ref,
            "scope": str(self.scope),
            "reason": str(self.reason),
            "severity": str(self.severity),
            "priority": self.priority,
            "message": self.message,
        }
        if self.blocked_by:
            result["blocked_by"] = self.blocked_by
        return result
