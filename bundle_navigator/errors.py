"""
Shared error types.

Placed in a separate module so the service, the processor and the API layer
raise and catch the same classes. Every error carries a machine-readable code
and the HTTP status the API renders it with.
"""

from typing import Any, Optional


class BundleServiceError(Exception):
    """Base class for all typed bundle errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BundleServiceError):
    """Bad or missing input. Raised before any side effect."""

    code = "VALIDATION"
    status_code = 400


class NotFoundError(BundleServiceError):
    """Unknown bundle, or a bundle owned by another case or org."""

    code = "NOT_FOUND"
    status_code = 404


class GateError(BundleServiceError):
    """View requested before the bundle reached the state it needs."""

    code = "GATE_ERROR"
    status_code = 400

    def __init__(self, reason: str, view: str, message: Optional[str] = None):
        super().__init__(
            message or f"View '{view}' is not available yet ({reason})",
            details={"reason": reason, "view": view},
        )
        self.reason = reason
        self.view = view


class ExtractionError(BundleServiceError):
    """The extraction capability returned an unusable result."""

    code = "EXTRACTION_FAILED"
    status_code = 502


class TransientExtractionError(ExtractionError):
    """Timeout, rate limit or upstream 5xx. Worth retrying."""

    code = "EXTRACTION_TRANSIENT"


class FatalProcessingError(BundleServiceError):
    """A chunk exhausted its retry budget."""

    code = "FATAL_PROCESSING"
    status_code = 502

    def __init__(self, chunk_index: int, attempts: int, last_error: str):
        super().__init__(
            f"Chunk {chunk_index} failed after {attempts} attempts: {last_error}",
            details={"chunk_index": chunk_index, "attempts": attempts},
        )
        self.chunk_index = chunk_index
        self.attempts = attempts
        self.last_error = last_error
