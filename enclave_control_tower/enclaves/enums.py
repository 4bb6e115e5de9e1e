"""
Canonical enums for enclaves, transitions, log sources and attestation.

Dispatch tables elsewhere are keyed by these closed sets; tests assert that
every member is covered.
"""

from enum import Enum


class EnclaveStatus(str, Enum):
    """Operational status of an enclave."""

    PENDING_DEPLOY = "PENDING_DEPLOY"
    DEPLOYING = "DEPLOYING"
    DEPLOYED = "DEPLOYED"
    PAUSING = "PAUSING"
    PAUSED = "PAUSED"
    RESUMING = "RESUMING"
    PENDING_DESTROY = "PENDING_DESTROY"
    DESTROYING = "DESTROYING"
    DESTROYED = "DESTROYED"
    FAILED = "FAILED"


# Only these allow the record to be deleted.
TERMINAL_STATUSES = frozenset({EnclaveStatus.DESTROYED, EnclaveStatus.FAILED})


class TransitionAction(str, Enum):
    """Client-requested lifecycle actions."""

    PAUSE = "pause"
    RESUME = "resume"
    TERMINATE = "terminate"


class LogSource(str, Enum):
    """Identifiers of the log backends a record can come from."""

    ECS = "ecs"
    STEP_FUNCTIONS = "stepfunctions"
    LAMBDA = "lambda"
    APPLICATION = "application"
    STATUS = "status"


class LogQuery(str, Enum):
    """Values accepted for the logs ``type`` filter."""

    ALL = "all"
    ECS = "ecs"
    STEP_FUNCTIONS = "stepfunctions"
    LAMBDA = "lambda"
    APPLICATION = "application"
    ERRORS = "errors"


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    PENDING = "PENDING"
    FAILED = "FAILED"


class TrustLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"
