"""Export wiki Bucket tables to deduplicated, resumable JSON dumps."""

__version__ = "0.1.0"
