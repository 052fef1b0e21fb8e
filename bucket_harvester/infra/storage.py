"""JSON dump storage with atomic replace-on-write."""

from __future__ import annotations

import json
import os
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import StorageError


class DumpMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_items: int = Field(alias="totalItems")
    last_data_offset: int = Field(default=0, alias="lastDataOffset")
    last_fetch_time: str = Field(alias="lastFetchTime")


class DatabaseDump(BaseModel):
    """Persisted dataset: ``{items, metadata}``."""

    items: list[Any] = Field(default_factory=list)
    metadata: DumpMetadata


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_dump(
    items: Sequence[Any], last_data_offset: int = 0, fetched_at: datetime | None = None
) -> DatabaseDump:
    timestamp = (fetched_at or utc_now()).isoformat()
    return DatabaseDump(
        items=list(items),
        metadata=DumpMetadata(
            total_items=len(items),
            last_data_offset=last_data_offset,
            last_fetch_time=timestamp,
        ),
    )


class DumpStore:
    """Load and save :class:`DatabaseDump` files.

    A missing or unreadable dump loads as ``None``. Saves go to a sibling
    ``.tmp`` file that is renamed over the target, so readers never see a
    partial file.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("bucket_harvester.storage")

    @staticmethod
    def temp_path(path: Path) -> Path:
        return path.with_name(path.name + ".tmp")

    def load(self, path: Path) -> DatabaseDump | None:
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            dump = DatabaseDump.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            self.logger.warning("dump_unreadable", path=str(path), error=str(exc))
            return None
        self.logger.info("dump_loaded", path=str(path), items=len(dump.items))
        return dump

    def save(self, dump: DatabaseDump, path: Path) -> None:
        tmp_path = self.temp_path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = dump.model_dump(mode="json", by_alias=True)
            with tmp_path.open("w", encoding="utf-8") as stream:
                json.dump(payload, stream, ensure_ascii=False, indent=2)
                stream.write("\n")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to save dump to {path}: {exc}", path=str(path)) from exc
        self.logger.info("dump_saved", path=str(path), items=len(dump.items))


__all__ = ["DatabaseDump", "DumpMetadata", "DumpStore", "create_dump", "utc_now"]
