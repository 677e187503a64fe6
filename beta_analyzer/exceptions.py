"""
Custom exception hierarchy for the beta and peer analyzer.

Every exception carries an ``error_kind`` so the request surface can map it
to a response without inspecting messages:

Exception Hierarchy:
    BetaAnalyzerError (base)                      INTERNAL_ERROR
    ├── ValidationError                           VALIDATION_ERROR
    │   ├── TickerValidationError
    │   └── RequestValidationError
    ├── DataError                                 EXTERNAL_PROVIDER_UNAVAILABLE
    │   └── DataFetchError
    ├── AnalysisError
    │   ├── InsufficientMarketDataError           INSUFFICIENT_MARKET_DATA
    │   └── InsufficientDataPointsError           INSUFFICIENT_DATA_POINTS
    ├── HistoryStorageError
    └── ConfigurationError
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    """Error categories exposed to callers of the analysis."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INSUFFICIENT_MARKET_DATA = "INSUFFICIENT_MARKET_DATA"
    INSUFFICIENT_DATA_POINTS = "INSUFFICIENT_DATA_POINTS"
    EXTERNAL_PROVIDER_UNAVAILABLE = "EXTERNAL_PROVIDER_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BetaAnalyzerError(Exception):
    """
    Base exception for all analyzer errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (ticker, source, field, etc.)
        cause: Original exception if this wraps another error
    """

    error_kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with details."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} [{detail_str}]"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {self.cause})"
        return msg


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(BetaAnalyzerError):
    """Base exception for malformed caller input."""

    error_kind = ErrorKind.VALIDATION_ERROR


class TickerValidationError(ValidationError):
    """
    Raised when a ticker symbol fails validation.

    Examples:
        - Invalid characters in ticker
        - Ticker too long
        - Empty ticker
    """

    def __init__(
        self,
        message: str,
        ticker: str,
        reason: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["field"] = "ticker"
        details["ticker"] = ticker
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details, **kwargs)


class RequestValidationError(ValidationError):
    """
    Raised when an analysis request has a bad shape or range.

    Examples:
        - Unsupported exchange
        - Unparseable dates
        - Start date not before end date
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Data-Related Exceptions
# =============================================================================

class DataError(BetaAnalyzerError):
    """Base exception for all data-related errors."""

    error_kind = ErrorKind.EXTERNAL_PROVIDER_UNAVAILABLE


class DataFetchError(DataError):
    """
    Raised when data cannot be fetched from an external source.

    Examples:
        - API request timeout
        - Network connectivity issues
        - Invalid API response
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        ticker: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        if ticker:
            details["ticker"] = ticker
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Analysis-Related Exceptions
# =============================================================================

class AnalysisError(BetaAnalyzerError):
    """Base exception for failures of the analysis itself."""
    pass


class InsufficientMarketDataError(AnalysisError):
    """Raised when the target or benchmark price history is empty."""

    error_kind = ErrorKind.INSUFFICIENT_MARKET_DATA

    def __init__(
        self,
        message: str,
        ticker: Optional[str] = None,
        benchmark: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if ticker:
            details["ticker"] = ticker
        if benchmark:
            details["benchmark"] = benchmark
        super().__init__(message, details=details, **kwargs)


class InsufficientDataPointsError(AnalysisError):
    """Raised when the aligned sample is too small or has no dispersion."""

    error_kind = ErrorKind.INSUFFICIENT_DATA_POINTS

    def __init__(
        self,
        message: str,
        ticker: Optional[str] = None,
        aligned_points: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if ticker:
            details["ticker"] = ticker
        if aligned_points is not None:
            details["aligned_points"] = aligned_points
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Storage / Configuration Exceptions
# =============================================================================

class HistoryStorageError(BetaAnalyzerError):
    """Raised when the search-history store cannot be read or written."""
    pass


class ConfigurationError(BetaAnalyzerError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Non-numeric fallback FX rate
        - Non-positive concurrency limit
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Utility Functions
# =============================================================================

def get_error_kind(error: Exception) -> ErrorKind:
    """Return the error kind for any exception (unknown errors are internal)."""
    if isinstance(error, BetaAnalyzerError):
        return error.error_kind
    return ErrorKind.INTERNAL_ERROR


def to_error_response(error: Exception) -> Tuple[int, Dict[str, Any]]:
    """
    Map an exception to an HTTP-style status code and response body.

    Validation errors expose their field detail, insufficient-data errors a
    readable message; everything else is withheld from the caller and only
    logged.

    Args:
        error: The exception raised while serving a request

    Returns:
        Tuple of (status_code, body)
    """
    kind = get_error_kind(error)

    if kind is ErrorKind.VALIDATION_ERROR:
        return 400, {
            "error": kind.value,
            "message": error.message,
            "details": error.details,
        }

    if kind in (ErrorKind.INSUFFICIENT_MARKET_DATA, ErrorKind.INSUFFICIENT_DATA_POINTS):
        return 404, {"error": kind.value, "message": error.message}

    logger.error(
        "request_failed",
        error_kind=kind.value,
        error_type=type(error).__name__,
        error=str(error),
    )
    return 500, {"error": kind.value, "message": "Internal server error"}
