"""HTTP transport for the wiki Bucket API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from ..config import BucketQuery, GlobalConfig
from ..config.models import DEFAULT_API_BASE_URL
from ..errors import TransportError
from .query import build_bucket_query


@dataclass(slots=True)
class BucketResponse:
    """Decoded ``{bucketQuery, bucket}`` envelope."""

    query: str
    records: list[dict[str, Any]] = field(default_factory=list)


class BucketClient:
    """Issue one GET per query against ``<base>?action=bucket``.

    Retries are the caller's concern; every failure surfaces as
    :class:`TransportError`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        user_agent: str | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.base_url = base_url
        self.logger = logger or structlog.get_logger("bucket_harvester.fetcher")
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": user_agent} if user_agent else None,
        )

    @classmethod
    def from_config(
        cls, config: GlobalConfig, logger: structlog.BoundLogger | None = None
    ) -> "BucketClient":
        return cls(
            base_url=config.api_base_url,
            timeout=config.request_timeout,
            user_agent=config.user_agent,
            logger=logger,
        )

    def __enter__(self) -> "BucketClient":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def execute(self, options: BucketQuery) -> BucketResponse:
        return self.execute_raw(build_bucket_query(options))

    def execute_raw(self, query: str) -> BucketResponse:
        params = {"action": "bucket", "format": "json", "query": query}
        self.logger.debug("bucket_request", query=query)
        try:
            response = self._client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            raise TransportError(f"Bucket API request failed: {exc}") from exc

        if not response.is_success:
            reason = response.reason_phrase
            raise TransportError(
                f"Bucket API error: HTTP {response.status_code}: {reason}",
                status_code=response.status_code,
                reason=reason,
            )
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> BucketResponse:
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                "Bucket API returned a body that is not JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError(
                "Bucket API envelope must be a JSON object", status_code=response.status_code
            )
        if "error" in payload:
            error = payload["error"]
            detail = error.get("info") if isinstance(error, dict) else error
            raise TransportError(
                f"Bucket API reported an error: {detail}", status_code=response.status_code
            )
        records = payload.get("bucket")
        if not isinstance(records, list):
            raise TransportError(
                "Bucket API envelope is missing the 'bucket' list",
                status_code=response.status_code,
            )
        return BucketResponse(query=str(payload.get("bucketQuery", "")), records=records)


__all__ = ["BucketClient", "BucketResponse"]
