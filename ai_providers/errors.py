"""
Error taxonomy for the provider orchestration layer.

Every error carries:
- error_code: machine-readable string (e.g. "PROCESSING_TIMEOUT")
- status_code: HTTP status the web layer answers with
- retryable: True for transient provider problems, False for permanent ones
"""

from typing import Optional, Dict, Any, List, Tuple


class ProviderError(Exception):
    """Base class for all orchestration errors."""

    error_code = "PROVIDER_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "errorCode": self.error_code,
            "retryable": self.retryable,
            "details": self.context,
        }


class ProviderUnavailableError(ProviderError):
    """No usable client or credential, or the backend keeps failing at transport level."""

    error_code = "PROVIDER_UNAVAILABLE"
    status_code = 503
    retryable = True


class ProviderTransportError(ProviderError):
    """Network / 5xx / rate-limit failure of a single provider call."""

    error_code = "PROVIDER_TRANSPORT"
    status_code = 503
    retryable = True


class ProviderHTTPError(ProviderError):
    """A provider answered with a non-2xx status."""

    error_code = "PROVIDER_HTTP"
    status_code = 502
    retryable = True

    def __init__(self, status: int, body: str = "", context: Optional[Dict[str, Any]] = None):
        self.status = status
        self.body = body
        ctx = {"status": status}
        ctx.update(context or {})
        super().__init__(f"Provider returned HTTP {status}", ctx)


class ProviderFileNotFoundError(ProviderError):
    """The backend does not know the file (never uploaded, expired or deleted)."""

    error_code = "FILE_NOT_FOUND"
    status_code = 404


class InvalidProviderRequestError(ProviderError):
    """The provider rejected the request itself; resending it unchanged will not help."""

    error_code = "INVALID_REQUEST"
    status_code = 400


class ProcessingTimeoutError(ProviderError):
    error_code = "PROCESSING_TIMEOUT"
    status_code = 504
    retryable = True


class ProcessingFailedError(ProviderError):
    error_code = "PROCESSING_FAILED"
    status_code = 422


class SchemaValidationError(ProviderError):
    error_code = "SCHEMA_VALIDATION"
    status_code = 502


class ProviderResponseFormatError(ProviderError):
    error_code = "RESPONSE_FORMAT"
    status_code = 502


class AllProvidersExhaustedError(ProviderError):
    """Every analyzer in a fallback chain failed."""

    error_code = "ALL_PROVIDERS_EXHAUSTED"
    status_code = 503
    retryable = True

    def __init__(self, causes: List[Tuple[str, BaseException]]):
        self.causes = list(causes)
        summary = "; ".join(f"{name}: {exc}" for name, exc in self.causes) or "no analyzer available"
        super().__init__(
            f"All analysis providers failed ({summary})",
            {"attempts": [{"analyzer": name, "error": str(exc)} for name, exc in self.causes]},
        )

    @property
    def last_cause(self) -> Optional[BaseException]:
        return self.causes[-1][1] if self.causes else None
