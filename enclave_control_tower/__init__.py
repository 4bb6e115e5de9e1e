"""
Enclave Control Tower

Lifecycle control and multi-source log/attestation aggregation for secure enclaves.
"""

import importlib.metadata

__version__ = importlib.metadata.version("enclave-control-tower")

from .enclaves.enums import EnclaveStatus, LogSource, TransitionAction
from .errors import (
    AuthorizationError,
    ConflictError,
    EnclaveError,
    InternalError,
    NotFoundError,
    UpstreamSourceError,
    ValidationError,
)

__all__ = [
    "AuthorizationError",
    "ConflictError",
    "EnclaveError",
    "EnclaveStatus",
    "InternalError",
    "LogSource",
    "NotFoundError",
    "TransitionAction",
    "UpstreamSourceError",
    "ValidationError",
]
