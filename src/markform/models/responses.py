"""
Response store types.

FieldResponse and CellResponse are immutable value objects; a response
store is a plain mapping from field id to FieldResponse, and a table value
is a list of TableRow mappings from column id to CellResponse.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .enums import AnswerState


@dataclass(frozen=True)
class CellResponse:
    """State of one table cell. Cells are never unanswered."""
    state: AnswerState = AnswerState.ANSWERED
    value: Any = None
    reason: Optional[str] = None

    def __post_init__(self):
        if self.state is AnswerState.UNANSWERED:
            raise ValueError("Table cells cannot be unanswered")
        if self.state is not AnswerState.ANSWERED and self.value is not None:
            raise ValueError("Only answered cells carry a value")

    @classmethod
    def answered(cls, value: Any = None) -> 'CellResponse':
        return cls(AnswerState.ANSWERED, value)

    @classmethod
    def skipped(cls, reason: Optional[str] = None) -> 'CellResponse':
        return cls(AnswerState.SKIPPED, None, reason)

    @classmethod
    def aborted(cls, reason: Optional[str] = None) -> 'CellResponse':
        return cls(AnswerState.ABORTED, None, reason)

    @property
    def is_empty(self) -> bool:
        return self.state is AnswerState.ANSWERED and self.value is None


TableRow = Dict[str, CellResponse]


@dataclass(frozen=True)
class FieldResponse:
    """
    Fill state of one field.

    An answered response with ``value=None`` means "intentionally empty",
    which is distinct from unanswered.
    """
    state: AnswerState = AnswerState.UNANSWERED
    value: Any = None
    reason: Optional[str] = None

    def __post_init__(self):
        if self.state is not AnswerState.ANSWERED and self.value is not None:
            raise ValueError(f"A {self.state} response cannot carry a value")
        if self.state in (AnswerState.UNANSWERED, AnswerState.ANSWERED) and self.reason is not None:
            raise ValueError(f"A {self.state} response cannot carry a reason")

    @classmethod
    def unanswered(cls) -> 'FieldResponse':
        return cls(AnswerState.UNANSWERED)

    @classmethod
    def answered(cls, value: Any = None) -> 'FieldResponse':
        return cls(AnswerState.ANSWERED, value)

    @classmethod
    def skipped(cls, reason: Optional[str] = None) -> 'FieldResponse':
        return cls(AnswerState.SKIPPED, None, reason)

    @classmethod
    def aborted(cls, reason: Optional[str] = None) -> 'FieldResponse':
        return cls(AnswerState.ABORTED, None, reason)

    @property
    def is_answered(self) -> bool:
        return self.state is AnswerState.ANSWERED

    @property
    def has_value(self) -> bool:
        """True when answered with a non-empty value."""
        if self.state is not AnswerState.ANSWERED or self.value is None:
            return False
        if isinstance(self.value, (list, dict, str)):
            return len(self.value) > 0
        return True

    @property
    def is_resolved(self) -> bool:
        """Resolved means answered with a value, skipped or aborted."""
        if self.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
            return True
        return self.has_value


ResponseStore = Dict[str, FieldResponse]


def table_rows(response: Optional[FieldResponse]) -> List[TableRow]:
    """Rows of a table response, or an empty list when it has none."""
    if response is None or response.state is not AnswerState.ANSWERED or not response.value:
        return []
    return list(response.value)
