"""Error hierarchy for Bucket-Harvester.

- TransportError: a single chunk request failed (HTTP status, network, envelope).
- StorageError: a dump could not be written.

Per-record decode failures are not raised; see ``engine.records.DecodeError``.
"""

from __future__ import annotations


class BucketHarvesterError(Exception):
    """Base class for all Bucket-Harvester errors."""


class TransportError(BucketHarvesterError):
    """Bucket API request failed or returned an unusable envelope."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class StorageError(BucketHarvesterError):
    """Persisting a dump to disk failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


__all__ = ["BucketHarvesterError", "StorageError", "TransportError"]
