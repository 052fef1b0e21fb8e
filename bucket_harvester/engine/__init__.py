"""Engine components: query → fetch → decode → dedup."""

from .dedup import DeduplicationResult, DeduplicationStore, build_key_set, filter_new_records
from .fetcher import BucketClient, BucketResponse
from .query import build_bucket_query, paginate
from .records import DecodeError, DecodedPayload, ParsedRecord, parse_record, recipe_key

__all__ = [
    "BucketClient",
    "BucketResponse",
    "DecodeError",
    "DecodedPayload",
    "DeduplicationResult",
    "DeduplicationStore",
    "ParsedRecord",
    "build_bucket_query",
    "build_key_set",
    "filter_new_records",
    "paginate",
    "parse_record",
    "recipe_key",
]
