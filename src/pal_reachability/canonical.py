from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any

import rfc8785
from pydantic import BaseModel

from .models import PalId

# JSON-primitive types that rfc8785 can serialize directly.
_PASSTHROUGH_TYPES = (bool, int, float, str, type(None))


def _normalize_for_jcs(value: Any) -> bool | int | float | str | None | list[Any] | dict[str, Any]:
    """Recursively convert Python/Pydantic types into JSON-primitive types.

    Pal ids become their text form, and sets become lists sorted by their
    normalized text so equal sets always serialize identically.

    Raises:
        TypeError: If value contains a type that cannot be converted to JSON.
    """
    if isinstance(value, Enum):
        return _normalize_for_jcs(value.value)

    if isinstance(value, _PASSTHROUGH_TYPES):
        return value

    if isinstance(value, PalId):
        return str(value)

    if isinstance(value, BaseModel):
        return _normalize_for_jcs(value.model_dump(mode="json"))

    if isinstance(value, dict):
        return {str(_normalize_for_jcs(k)): _normalize_for_jcs(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_normalize_for_jcs(item) for item in value]

    if isinstance(value, (set, frozenset)):
        items = [_normalize_for_jcs(item) for item in value]
        return sorted(items, key=lambda item: rfc8785.dumps(item))

    raise TypeError(
        f"Cannot serialize type {type(value).__name__} to canonical JSON. "
        f"Convert to a JSON-compatible type first."
    )


def to_canonical_json(value: Any) -> str:
    """Serialize a value to deterministic, byte-for-byte reproducible JSON per RFC 8785."""
    normalized = _normalize_for_jcs(value)
    return rfc8785.dumps(normalized).decode("utf-8")


def reachable_fingerprint(reachable_ids: frozenset[PalId] | set[PalId]) -> str:
    """SHA-256 over the canonical JSON of the id set; equal sets share a fingerprint."""
    ordered = [str(pal_id) for pal_id in sorted(reachable_ids, key=lambda pal_id: pal_id.sort_key)]
    return hashlib.sha256(to_canonical_json(ordered).encode("utf-8")).hexdigest()
