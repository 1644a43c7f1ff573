"""Custom exception hierarchy for the OrderProxy application.

Each failure category the proxy can report has its own type so the HTTP layer
can map it to a status code and response body without inspecting messages.
"""

from typing import Any, Dict, List, Optional


class OrderProxyException(Exception):
    """Base exception for all OrderProxy-specific exceptions."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}


class UpstreamError(OrderProxyException):
    """Raised when the commerce API answers with a non-success status.

    ``message`` carries the upstream's first error detail, or the HTTP status
    text when the upstream gave none.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
    """Raised when the commerce API does not answer within the configured timeout."""

    pass


class ValidationError(OrderProxyException):
    """Raised when client input is malformed.

    ``field_errors`` holds one entry per failing field; it may be empty when
    the failure is a single request-level message (e.g. missing pickup time).
    """

    def __init__(
        self,
        message: str,
        field_errors: Optional[List[Dict[str, str]]] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.field_errors = field_errors or []


class CheckoutError(ValidationError):
    """Raised when cart contents cannot be turned into an order payload."""

    pass


class StoreOfflineError(OrderProxyException):
    """Raised when online ordering is disabled and a mutation is attempted."""

    pass


class CacheError(OrderProxyException):
    """Raised when the response cache fails a read/write probe."""

    pass


class UnitConversionError(OrderProxyException):
    """Raised when converting between units of different families."""

    pass


class ConfigurationError(OrderProxyException):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.config_key = config_key
