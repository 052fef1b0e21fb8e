"""Deduplication layer keyed by content-derived record keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

import structlog

from ..config import DatasetConfig
from .records import DecodeError, KeyFunc, ParsedRecord, key_func_for, parse_record, recipe_key


@dataclass
class DeduplicationResult:
    records: list[ParsedRecord] = field(default_factory=list)
    duplicates: int = 0
    decode_errors: int = 0

    @property
    def added(self) -> int:
        return len(self.records)


def build_key_set(records: Iterable[ParsedRecord]) -> set[str]:
    return {record.key for record in records}


def filter_new_records(
    batch: Sequence[Mapping[str, Any]],
    seen_keys: set[str],
    payload_field: str = "production_json",
    key_func: KeyFunc = recipe_key,
    logger: structlog.BoundLogger | None = None,
) -> DeduplicationResult:
    """Return records of ``batch`` whose key is not in ``seen_keys``.

    ``seen_keys`` is updated in place, so duplicates inside the batch are
    caught as well as those seen in earlier batches. Output order follows
    input order.
    """

    result = DeduplicationResult()
    for index, raw in enumerate(batch):
        parsed = parse_record(raw, payload_field, key_func)
        if isinstance(parsed, DecodeError):
            result.decode_errors += 1
            if logger is not None:
                logger.debug("record_decode_failed", index=index, reason=parsed.reason)
            continue
        if parsed.key in seen_keys:
            result.duplicates += 1
            continue
        seen_keys.add(parsed.key)
        result.records.append(parsed)
    return result


class DeduplicationStore:
    """Key set plus the decode settings of one dataset."""

    def __init__(
        self,
        payload_field: str = "production_json",
        key_func: KeyFunc = recipe_key,
        seen_keys: Iterable[str] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.payload_field = payload_field
        self.key_func = key_func
        self.seen_keys: set[str] = set(seen_keys or ())
        self.logger = logger

    @classmethod
    def for_dataset(
        cls, dataset: DatasetConfig, logger: structlog.BoundLogger | None = None
    ) -> "DeduplicationStore":
        return cls(dataset.payload_field, key_func_for(dataset), logger=logger)

    def __len__(self) -> int:
        return len(self.seen_keys)

    def __contains__(self, key: object) -> bool:
        return key in self.seen_keys

    def seed(self, records: Iterable[ParsedRecord]) -> None:
        self.seen_keys.update(build_key_set(records))

    def check_and_store(self, batch: Sequence[Mapping[str, Any]]) -> DeduplicationResult:
        return filter_new_records(
            batch,
            self.seen_keys,
            payload_field=self.payload_field,
            key_func=self.key_func,
            logger=self.logger,
        )

    def reset(self) -> None:
        self.seen_keys = set()


__all__ = [
    "DeduplicationResult",
    "DeduplicationStore",
    "build_key_set",
    "filter_new_records",
]
