"""Infra layer utilities (dump storage)."""

from .storage import DatabaseDump, DumpMetadata, DumpStore, create_dump, utc_now

__all__ = ["DatabaseDump", "DumpMetadata", "DumpStore", "create_dump", "utc_now"]
