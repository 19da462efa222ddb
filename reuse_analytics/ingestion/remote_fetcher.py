"""
Remote Order Fetcher

HTTP client for the external order source of record. Supports:
- Full retrieval, optionally asking the remote to refresh its own cache
- Incremental retrieval of records newer than a watermark
- Failure classification by response status
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import structlog

from reuse_analytics.config import get_settings
from reuse_analytics.exceptions import (
    ConfigurationError,
    FailureCategory,
    RemoteFetchError,
    WatermarkUnsupportedError,
)

logger = structlog.get_logger(__name__)


class FetchMode(str, Enum):
    """Retrieval modes"""
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass
class FetchResult:
    """Records returned by one fetch"""
    records: List[Dict[str, Any]] = field(default_factory=list)
    total_remote_count: int = 0
    last_updated: Optional[str] = None
    mode: FetchMode = FetchMode.FULL


def classify_status(status_code: int, mode: FetchMode) -> FailureCategory:
    """
    Map a failed response status to a failure category.

    401/403 -> fatal auth; 503 -> remote cache warming (retryable);
    other 5xx -> unavailable (retryable); other 4xx -> fatal, except on an
    incremental request where it means watermarks are unsupported.
    """
    if status_code in (401, 403):
        return FailureCategory.FATAL_AUTH
    if status_code == 503:
        return FailureCategory.RETRYABLE_WARMING
    if status_code >= 500:
        return FailureCategory.RETRYABLE_UNAVAILABLE
    if mode == FetchMode.INCREMENTAL:
        return FailureCategory.WATERMARK_UNSUPPORTED
    return FailureCategory.FATAL_REQUEST


def parse_payload(payload: Any) -> FetchResult:
    """
    Accept either a bare array of records or an envelope
    {status, count, data, last_updated}.
    """
    if isinstance(payload, list):
        records = payload
        return FetchResult(records=_only_objects(records), total_remote_count=len(records))

    if isinstance(payload, dict):
        records = payload.get("data")
        if records is None:
            records = []
        if not isinstance(records, list):
            raise RemoteFetchError(
                "Response envelope 'data' is not a list",
                FailureCategory.MALFORMED_RESPONSE,
            )
        count = payload.get("count", payload.get("total"))
        try:
            total = int(count) if count is not None else len(records)
        except (TypeError, ValueError):
            total = len(records)
        return FetchResult(
            records=_only_objects(records),
            total_remote_count=total,
            last_updated=payload.get("last_updated"),
        )

    raise RemoteFetchError(
        f"Unexpected response payload type: {type(payload).__name__}",
        FailureCategory.MALFORMED_RESPONSE,
    )


def _only_objects(records: List[Any]) -> List[Dict[str, Any]]:
    kept = [record for record in records if isinstance(record, dict)]
    if len(kept) != len(records):
        logger.warning("Dropped non-object records from response", dropped=len(records) - len(kept))
    return kept


class RemoteOrderFetcher:
    """
    Client for the remote order source.

    The caller may inject an httpx.AsyncClient (tests use a MockTransport);
    otherwise one client is created per fetch.

    Example:
        fetcher = RemoteOrderFetcher(base_url, api_key)
        result = await fetcher.fetch(FetchMode.INCREMENTAL, watermark="1042")
    """

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        api_key_header: str = "x-api-key",
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.timeout = timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url) and bool(self.api_key)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the endpoint or credentials are missing"""
        if not self.base_url:
            raise ConfigurationError("Order source URL is not configured (ORDERS_API_BASE_URL)")
        if not self.api_key:
            raise ConfigurationError("Order source API key is not configured (ORDERS_API_API_KEY)")

    @staticmethod
    def build_params(
        mode: FetchMode,
        watermark: Optional[str] = None,
        refresh: bool = False,
    ) -> Dict[str, str]:
        params = {"mode": mode.value}
        if mode == FetchMode.INCREMENTAL:
            if watermark is None:
                raise ValueError("Incremental fetch requires a watermark")
            params["since_id"] = str(watermark)
        elif refresh:
            params["refresh"] = "true"
        return params

    async def fetch(
        self,
        mode: FetchMode = FetchMode.FULL,
        watermark: Optional[str] = None,
        refresh: bool = False,
    ) -> FetchResult:
        """
        Fetch orders from the remote source.

        Args:
            mode: Full or incremental retrieval
            watermark: Highest external id already stored (incremental only)
            refresh: Ask the remote to rebuild its cache first (full only)

        Raises:
            ConfigurationError: Missing endpoint or credentials
            WatermarkUnsupportedError: Remote rejected the incremental request
            RemoteFetchError: Any other classified failure
        """
        self.ensure_configured()
        params = self.build_params(mode, watermark, refresh)
        headers = {
            "Accept": "application/json",
            self.api_key_header: self.api_key,
        }

        logger.info("Fetching orders from remote", mode=mode.value, watermark=watermark, refresh=refresh)

        try:
            if self._client is not None:
                response = await self._client.get(self.base_url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.base_url, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.warning("Remote order source unreachable", error=str(e), error_type=type(e).__name__)
            raise RemoteFetchError(
                f"Order source unreachable: {e}",
                FailureCategory.RETRYABLE_UNAVAILABLE,
            ) from e

        if response.is_error:
            category = classify_status(response.status_code, mode)
            message = f"Order source returned {response.status_code}"
            logger.warning(
                "Remote order request failed",
                status_code=response.status_code,
                category=category.value,
                body=response.text[:200],
            )
            if category == FailureCategory.WATERMARK_UNSUPPORTED:
                raise WatermarkUnsupportedError(message, response.status_code)
            raise RemoteFetchError(message, category, response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteFetchError(
                "Order source returned a non-JSON body",
                FailureCategory.MALFORMED_RESPONSE,
                response.status_code,
            ) from e

        result = parse_payload(payload)
        result.mode = mode
        logger.info(
            "Fetched orders from remote",
            mode=mode.value,
            records=len(result.records),
            remote_count=result.total_remote_count,
            last_updated=result.last_updated,
        )
        return result


def create_remote_fetcher(client: Optional[httpx.AsyncClient] = None) -> RemoteOrderFetcher:
    """Create a RemoteOrderFetcher from application settings"""
    source = get_settings().order_source
    return RemoteOrderFetcher(
        base_url=source.base_url,
        api_key=source.api_key.get_secret_value() if source.api_key else None,
        api_key_header=source.api_key_header,
        timeout=source.request_timeout_seconds,
        client=client,
    )
