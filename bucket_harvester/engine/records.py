"""Payload decoding and dedup-key derivation for Bucket records.

Bucket rows carry their interesting data as a JSON string in one column
(``production_json`` for recipes). Decoding returns a tagged result instead
of raising so that one malformed row never aborts a chunk.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Sequence, Union

from ..config import DatasetConfig, KeyStrategy

UNKNOWN_OUTPUT = "unknown"
LEGACY_DATA_FIELD = "production_data"
LEGACY_KEY_FIELD = "recipe_key"

KeyFunc = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True, slots=True)
class DecodedPayload:
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class DecodeError:
    reason: str


DecodeResult = Union[DecodedPayload, DecodeError]


@dataclass(slots=True)
class ParsedRecord:
    """Decoded payload paired with its dedup key."""

    data: dict[str, Any]
    key: str

    def to_item(self) -> dict[str, Any]:
        return {"data": self.data, "key": self.key}

    @classmethod
    def from_item(cls, item: Any) -> "ParsedRecord | None":
        """Rebuild a record from its dump form, or ``None`` if the item is unusable.

        Items written by the older exporter (``production_data`` plus
        ``recipe_key``) are accepted too.
        """

        if not isinstance(item, Mapping):
            return None
        data = item.get("data", item.get(LEGACY_DATA_FIELD))
        key = item.get("key", item.get(LEGACY_KEY_FIELD))
        if not isinstance(data, Mapping) or not isinstance(key, str):
            return None
        return cls(data=dict(data), key=key)


def decode_record(record: Mapping[str, Any], payload_field: str) -> DecodeResult:
    if not isinstance(record, Mapping):
        return DecodeError("record is not an object")
    if payload_field not in record:
        return DecodeError(f"missing field '{payload_field}'")
    raw = record[payload_field]
    if isinstance(raw, Mapping):
        return DecodedPayload(dict(raw))
    if not isinstance(raw, str):
        return DecodeError(f"field '{payload_field}' is {type(raw).__name__}, expected JSON text")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        return DecodeError(f"invalid JSON in '{payload_field}': {exc.msg}")
    if not isinstance(payload, dict):
        return DecodeError(f"'{payload_field}' does not decode to an object")
    return DecodedPayload(payload)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def recipe_key(payload: Mapping[str, Any]) -> str:
    """Key recipes by output, sorted materials, facility, process and method.

    Quantities, skills and tick counts are deliberately ignored: two
    payloads equal in these five slots are the same recipe.
    """

    output = payload.get("output")
    output_name = output.get("name") if isinstance(output, Mapping) else None
    materials = payload.get("materials")
    if not isinstance(materials, (list, tuple)):
        materials = ()
    material_names = sorted(
        _text(material.get("name")) for material in materials if isinstance(material, Mapping)
    )
    return "|".join(
        [
            _text(output_name) or UNKNOWN_OUTPUT,
            ",".join(material_names),
            _text(payload.get("facility")),
            _text(payload.get("process")),
            _text(payload.get("method")),
        ]
    )


def fields_key(payload: Mapping[str, Any], fields: Sequence[str]) -> str:
    parts: list[str] = []
    for name in fields:
        value = payload.get(name)
        if isinstance(value, (list, tuple)):
            parts.append(",".join(sorted(_text(item) for item in value)))
        else:
            parts.append(_text(value))
    return "|".join(parts)


def key_func_for(dataset: DatasetConfig) -> KeyFunc:
    if dataset.key_strategy is KeyStrategy.FIELDS:
        return partial(fields_key, fields=list(dataset.key_fields))
    return recipe_key


def parse_record(
    record: Mapping[str, Any], payload_field: str, key_func: KeyFunc = recipe_key
) -> ParsedRecord | DecodeError:
    decoded = decode_record(record, payload_field)
    if isinstance(decoded, DecodeError):
        return decoded
    try:
        key = key_func(decoded.payload)
    except (AttributeError, LookupError, TypeError, ValueError) as exc:
        return DecodeError(f"cannot derive key: {exc}")
    return ParsedRecord(data=decoded.payload, key=key)


__all__ = [
    "DecodeError",
    "DecodeResult",
    "DecodedPayload",
    "KeyFunc",
    "ParsedRecord",
    "UNKNOWN_OUTPUT",
    "decode_record",
    "fields_key",
    "key_func_for",
    "parse_record",
    "recipe_key",
]
