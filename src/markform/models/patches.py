"""
Patch types and batch decoding.

Patches arrive as JSON-like mappings from external callers. decode_patches
turns a batch into typed Patch objects or raises PatchDecodeError when the
batch as a whole cannot be understood.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import PatchDecodeError
from .enums import PatchOp


logger = logging.getLogger(__name__)

# Accept both snake_case and the camelCase spelling used by JSON callers.
_KEY_ALIASES = {
    "fieldId": "field_id",
    "noteId": "note_id",
}

_KNOWN_KEYS = {"op", "field_id", "value", "index", "role", "reason", "note_id", "text", "ref"}


@dataclass
class Patch:
    """One mutation request targeting a single field, row, item or note."""
    op: PatchOp
    field_id: Optional[str] = None
    value: Any = None
    index: Optional[int] = None
    role: Optional[str] = None
    reason: Optional[str] = None
    note_id: Optional[str] = None
    text: Optional[str] = None
    ref: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Return the patch as the caller supplied it."""
        if self.raw:
            return dict(self.raw)
        result: Dict[str, Any] = {"op": str(self.op)}
        for key in ("field_id", "value", "index", "role", "reason", "note_id", "text", "ref"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


def decode_patch(raw: Any, patch_index: int) -> Patch:
    """Decode one patch mapping."""
    if isinstance(raw, Patch):
        return raw
    if not isinstance(raw, dict):
        raise PatchDecodeError(
            f"Patch {patch_index} must be an object, got {type(raw).__name__}",
            patch_index=patch_index,
        )

    normalized = {_KEY_ALIASES.get(key, key): value for key, value in raw.items()}
    unknown = sorted(set(normalized) - _KNOWN_KEYS)
    if unknown:
        raise PatchDecodeError(
            f"Patch {patch_index} has unknown keys: {', '.join(unknown)}",
            patch_index=patch_index,
        )

    op_name = normalized.get("op")
    if not isinstance(op_name, str):
        raise PatchDecodeError(f"Patch {patch_index} is missing 'op'", patch_index=patch_index)
    try:
        op = PatchOp(op_name)
    except ValueError:
        raise PatchDecodeError(
            f"Patch {patch_index} has unknown op '{op_name}'", patch_index=patch_index
        ) from None

    if op not in (PatchOp.ADD_NOTE, PatchOp.REMOVE_NOTE):
        if not isinstance(normalized.get("field_id"), str) or not normalized["field_id"]:
            raise PatchDecodeError(
                f"Patch {patch_index} ({op_name}) requires a 'field_id'", patch_index=patch_index
            )

    return Patch(
        op=op,
        field_id=normalized.get("field_id"),
        value=normalized.get("value"),
        index=normalized.get("index"),
        role=normalized.get("role"),
        reason=normalized.get("reason"),
        note_id=normalized.get("note_id"),
        text=normalized.get("text"),
        ref=normalized.get("ref"),
        raw=dict(raw),
    )


def decode_patches(batch: Any) -> List[Patch]:
    """
    Decode a whole batch.

    Raises:
        PatchDecodeError: if the batch is not a list or any entry is not a
            well-formed patch object.
    """
    if isinstance(batch, (str, bytes)) or not isinstance(batch, (list, tuple)):
        raise PatchDecodeError(f"Patch batch must be a list, got {type(batch).__name__}")
    return [decode_patch(raw, i) for i, raw in enumerate(batch)]
