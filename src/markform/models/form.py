"""
Form aggregate types: schema tree, metadata, source index and ParsedForm.

A ParsedForm is a value. Operations that change it (patch application)
return a new instance; nothing in the package mutates one in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from .enums import DEFAULT_ROLES, RunMode, SyntaxStyle
from .fields import BaseField, Field
from .responses import FieldResponse, ResponseStore


logger = logging.getLogger(__name__)

DEFAULT_SPEC_VERSION = "MF/0.1"


@dataclass
class FieldGroup:
    """
    An ordered group of fields and nested groups.

    Implicit groups hold fields placed directly under the form tag and are
    serialized without a group wrapper.
    """
    id: str
    title: Optional[str] = None
    children: List[Union[BaseField, 'FieldGroup']] = field(default_factory=list)
    implicit: bool = False
    validate: Any = None

    def iter_fields(self) -> Iterator[Field]:
        """Yield fields in document order, descending into nested groups."""
        for child in self.children:
            if isinstance(child, FieldGroup):
                yield from child.iter_fields()
            else:
                yield child

    def iter_groups(self) -> Iterator['FieldGroup']:
        """Yield this group and every nested group, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, FieldGroup):
                yield from child.iter_groups()


@dataclass
class FormSchema:
    """Top-level form structure."""
    id: str
    title: Optional[str] = None
    groups: List[FieldGroup] = field(default_factory=list)

    def iter_fields(self) -> Iterator[Field]:
        for group in self.groups:
            yield from group.iter_fields()

    def iter_groups(self) -> Iterator[FieldGroup]:
        for group in self.groups:
            yield from group.iter_groups()

    def get_field(self, field_id: str) -> Optional[Field]:
        for form_field in self.iter_fields():
            if form_field.id == field_id:
                return form_field
        return None

    @property
    def field_ids(self) -> List[str]:
        return [form_field.id for form_field in self.iter_fields()]


@dataclass
class DocBlock:
    """A description, instructions or documentation block attached to an id."""
    tag: str
    ref: str
    body: str


@dataclass
class Note:
    """A free-text note attached to a field, group or the form."""
    id: str
    ref: str
    role: str
    text: str


@dataclass
class HarnessConfig:
    """Fill-loop limits declared in the metadata block."""
    max_turns: Optional[int] = None
    max_patches_per_turn: Optional[int] = None
    max_issues_per_turn: Optional[int] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.max_turns, self.max_patches_per_turn, self.max_issues_per_turn)
        )


@dataclass
class FormMetadata:
    """
    Document-level metadata taken from the frontmatter block.

    ``extra`` is the complete frontmatter mapping as loaded, so keys the
    model does not interpret survive a full regeneration.
    """
    spec_version: str = DEFAULT_SPEC_VERSION
    roles: List[str] = field(default_factory=lambda: list(DEFAULT_ROLES))
    role_instructions: Dict[str, str] = field(default_factory=dict)
    harness: Optional[HarnessConfig] = None
    run_mode: Optional[RunMode] = None
    description: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceSpan:
    """
    Location of one recognised node in the source text.

    ``start``/``end`` cover the whole tag pair; ``inner_start``/``inner_end``
    cover the body between the opening and closing tags.
    """
    tag_type: str
    start: int
    end: int
    inner_start: int
    inner_end: int
    start_line: int
    end_line: int


@dataclass
class SourceIndex:
    """Spans of every recognised node, keyed by node key."""
    spans: Dict[str, SourceSpan] = field(default_factory=dict)
    frontmatter: Optional[SourceSpan] = None

    @staticmethod
    def field_key(field_id: str) -> str:
        return f"field:{field_id}"

    @staticmethod
    def group_key(group_id: str) -> str:
        return f"group:{group_id}"

    @staticmethod
    def note_key(note_id: str) -> str:
        return f"note:{note_id}"

    FORM_KEY = "form"

    def add(self, key: str, span: SourceSpan) -> None:
        self.spans[key] = span

    def get(self, key: str) -> Optional[SourceSpan]:
        return self.spans.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self.spans

    def __len__(self) -> int:
        return len(self.spans)


@dataclass
class ParsedForm:
    """
    A parsed form document.

    ``baseline_responses`` and ``baseline_note_ids`` record the state the
    source text encodes, which lets the content-preserving serializer tell
    touched fields from untouched ones.
    """
    source: str
    schema: FormSchema
    responses: ResponseStore
    metadata: FormMetadata = field(default_factory=FormMetadata)
    docs: List[DocBlock] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    source_index: SourceIndex = field(default_factory=SourceIndex)
    syntax: SyntaxStyle = SyntaxStyle.MARKDOC
    baseline_responses: ResponseStore = field(default_factory=dict)
    baseline_note_ids: List[str] = field(default_factory=list)

    def get_field(self, field_id: str) -> Optional[Field]:
        return self.schema.get_field(field_id)

    def get_response(self, field_id: str) -> FieldResponse:
        return self.responses.get(field_id, FieldResponse.unanswered())

    def iter_fields(self) -> Iterator[Field]:
        return self.schema.iter_fields()

    def docs_for(self, ref: str) -> List[DocBlock]:
        return [doc for doc in self.docs if doc.ref == ref]

    def description_for(self, ref: str) -> Optional[str]:
        for doc in self.docs:
            if doc.ref == ref and doc.tag == "description":
                return doc.body
        return None

    def model_equals(self, other: 'ParsedForm') -> bool:
        """Compare schema and response store, ignoring source text and spans."""
        return self.schema == other.schema and self.responses == other.responses
