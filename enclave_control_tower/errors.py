"""
Error taxonomy for Enclave Control Tower.

Every domain failure carries a stable code and the HTTP status it maps to.
Validation, authorization and conflict errors are raised before any mutation.
UpstreamSourceError never leaves a log fetcher; it is converted to an empty
result at the fetcher boundary.
"""

from typing import Any, Dict


class EnclaveError(Exception):
    """
    Base class for domain errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        status_code: HTTP status the API layer responds with
        extra: Additional fields merged into the serialized error
    """

    code = "ENCLAVE_ERROR"
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationError(EnclaveError):
    """Malformed or missing request fields."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(EnclaveError):
    """The requested enclave does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class AuthorizationError(EnclaveError):
    """The caller does not own the enclave."""

    code = "UNAUTHORIZED"
    status_code = 403


class ConflictError(EnclaveError):
    """The enclave is not in a state that allows the requested operation."""

    code = "CONFLICT"
    status_code = 400


class UpstreamSourceError(EnclaveError):
    """A single log backend call failed."""

    code = "UPSTREAM_SOURCE_ERROR"
    status_code = 502

    def __init__(self, source: str, operation: str, cause: Exception):
        self.source = source
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"{source} {operation} failed: {cause}",
            source=source,
            operation=operation,
        )


class InternalError(EnclaveError):
    """Persistence or otherwise unexpected failure."""

    code = "INTERNAL_ERROR"
    status_code = 500
