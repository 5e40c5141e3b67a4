"""Custom exceptions for FinMoE.

Provides a hierarchy of exceptions for different error types.
All FinMoE exceptions inherit from FinMoEException.
"""

from typing import Any, Dict, Optional


class FinMoEException(Exception):
    """Base exception for all FinMoE errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: str = "FINMOE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for log and event payloads."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(FinMoEException):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(FinMoEException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InferenceError(FinMoEException):
    """Base class for failures talking to the inference provider."""


class RateLimitError(InferenceError):
    """Raised when the provider signals a rate limit (HTTP 429).

    Retryable. The caller decides whether and when to retry; the
    rate limiter has already pushed the next permitted call time out.
    """

    def __init__(
        self,
        message: str,
        retry_after_seconds: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["retry_after_seconds"] = retry_after_seconds
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, code="RATE_LIMITED", details=details)


class ProviderError(InferenceError):
    """Raised when a provider call fails for any reason other than rate limiting."""

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["retryable"] = retryable
        self.retryable = retryable
        super().__init__(message, code="PROVIDER_ERROR", details=details)


class ParseError(FinMoEException):
    """Raised when a model response cannot be decoded into structured fields.

    Never escapes the parsing module; callers fall back to text extraction.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PARSE_ERROR", details=details)


class UnknownWorkerError(FinMoEException):
    """Raised when a dispatch names a worker that does not exist."""

    def __init__(self, worker_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["worker_id"] = worker_id
        self.worker_id = worker_id
        super().__init__(
            f"Unknown worker: {worker_id}", code="UNKNOWN_WORKER", details=details
        )


class RequestNotFoundError(FinMoEException):
    """Raised when storage is asked to update a request it does not hold."""

    def __init__(self, request_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["request_id"] = request_id
        self.request_id = request_id
        super().__init__(
            f"Request {request_id} not found", code="REQUEST_NOT_FOUND", details=details
        )


class InvalidTransitionError(FinMoEException):
    """Raised on a backwards status move or a second agent assignment."""

    def __init__(
        self,
        request_id: str,
        current: str,
        requested: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details.update({
            "request_id": request_id,
            "current": current,
            "requested": requested,
        })
        super().__init__(
            f"Request {request_id} cannot move from {current} to {requested}",
            code="INVALID_TRANSITION",
            details=details,
        )
