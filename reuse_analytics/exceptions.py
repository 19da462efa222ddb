"""
Pipeline Exceptions

Only fatal categories are raised; retryable conditions, failed batches and
reconciliation misses are reported as data in structured results.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from reuse_analytics.ingestion.sync_state import SyncResult


class FailureCategory(str, Enum):
    """Classification of ingestion failures"""
    FATAL_CONFIGURATION = "fatal_configuration"
    FATAL_AUTH = "fatal_auth"
    FATAL_REQUEST = "fatal_request"
    MALFORMED_RESPONSE = "malformed_response"
    RETRYABLE_WARMING = "retryable_warming"
    RETRYABLE_UNAVAILABLE = "retryable_unavailable"
    WATERMARK_UNSUPPORTED = "watermark_unsupported"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"

    @property
    def retryable(self) -> bool:
        return self in (
            FailureCategory.RETRYABLE_WARMING,
            FailureCategory.RETRYABLE_UNAVAILABLE,
        )


class PipelineError(Exception):
    """Base class for all pipeline errors"""


class ConfigurationError(PipelineError):
    """Required configuration (credentials, endpoint) is missing"""

    category = FailureCategory.FATAL_CONFIGURATION


class RemoteFetchError(PipelineError):
    """The remote order source rejected or failed a request"""

    def __init__(
        self,
        message: str,
        category: FailureCategory,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.category = category
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.category.retryable


class WatermarkUnsupportedError(RemoteFetchError):
    """The remote refused an incremental (watermark) request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, FailureCategory.WATERMARK_UNSUPPORTED, status_code)


class SyncAbortedError(PipelineError):
    """A sync run ended in a terminal error state; the lock has been released"""

    def __init__(
        self,
        message: str,
        category: FailureCategory,
        result: "SyncResult",
    ):
        super().__init__(message)
        self.category = category
        self.result = result


class MaxRetriesExceededError(SyncAbortedError):
    """Every attempt in the bounded retry sequence failed with a retryable error"""

    def __init__(self, message: str, result: "SyncResult"):
        super().__init__(message, FailureCategory.MAX_RETRIES_EXCEEDED, result)
