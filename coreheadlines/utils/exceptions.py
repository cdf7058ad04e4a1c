"""
CoreHeadlines Custom Exceptions
==============================

Exception hierarchy for the headline pipeline with error codes and context
information. Per-feed and per-article errors are contained by the pipeline;
only store-write and delivery failures propagate to the caller of a run.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Feed ingestion errors (F001-F099)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_BAD_STATUS = "F005"
    FEED_EMPTY = "F006"
    FEED_ENCODING_ERROR = "F007"

    # Publication store errors (D001-D099)
    STORE_QUERY = "D001"
    STORE_WRITE = "D002"

    # Delivery errors (L001-L099)
    DELIVERY_FAILED = "L001"
    DELIVERY_TIMEOUT = "L004"


class CoreHeadlinesError(Exception):
    """Base exception for all CoreHeadlines errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        """Initialize CoreHeadlines error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(CoreHeadlinesError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            **kwargs,
        )


class FeedError(CoreHeadlinesError):
    """Feed ingestion errors. Always scoped to a single feed."""

    def __init__(self, message: str, feed_header: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_header: Identity of the feed that caused the error
            **kwargs: Additional arguments for CoreHeadlinesError
        """
        context = kwargs.pop("context", {})
        if feed_header:
            context["feed"] = feed_header

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class FeedFetchError(FeedError):
    """Transport failure, timeout or non-200 response after retries."""

    pass


class FeedParseError(FeedError):
    """Malformed dialect content."""

    def __init__(self, message: str, feed_header: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        super().__init__(message, feed_header=feed_header, **kwargs)


class EmptyFeedError(FeedParseError):
    """No valid articles remained after filtering. A signal, not a crash."""

    def __init__(self, message: str, feed_header: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_EMPTY)
        super().__init__(message, feed_header=feed_header, **kwargs)


class StoreError(CoreHeadlinesError):
    """Publication store errors."""

    def __init__(self, message: str, guid: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if guid:
            context["guid"] = guid

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.STORE_QUERY),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class StoreQueryError(StoreError):
    """A publication check failed. Scoped to one article."""

    pass


class StoreWriteError(StoreError):
    """A batch write, or its single unprocessed-item retry, failed."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.STORE_WRITE)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class DeliveryError(CoreHeadlinesError):
    """Digest delivery failed after all attempts."""

    def __init__(self, message: str, article_count: Optional[int] = None, **kwargs):
        """Initialize delivery error.

        Args:
            message: Error message
            article_count: Number of articles that failed to deliver
            **kwargs: Additional arguments for CoreHeadlinesError
        """
        context = kwargs.pop("context", {})
        if article_count:
            context["article_count"] = article_count

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DELIVERY_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )
