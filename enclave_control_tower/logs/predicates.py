"""
Relevance and error predicates for log records.

All of these are substring heuristics and therefore approximate. They are kept
as small pure functions so that false positives and negatives can be tuned
and tested without any AWS calls.
"""

from typing import Callable, Dict, Sequence

from ..enclaves.enums import LogSource
from .records import LogRecord

MessagePredicate = Callable[[str], bool]
RecordPredicate = Callable[[LogRecord], bool]

# Markers written by the deployment tooling around each run.
CONTAINER_MARKERS = ("ENCLAVE_ID", "Terraform", "===")

# General health signal from the status monitor, surfaced even when a line
# does not mention the enclave id.
STATUS_MONITOR_FUNCTION = "status-monitor"
STATUS_MONITOR_PHRASES = (
    "Starting enclave status monitoring",
    "Successfully monitored enclave statuses",
    "Error monitoring statuses",
    "Checking enclave",
    "Instance",
    "Updating enclave",
    "Successfully updated enclave",
)


def _contains_any(message: str, needles: Sequence[str]) -> bool:
    return any(needle in message for needle in needles)


def container_relevance(enclave_id: str) -> MessagePredicate:
    """Keep lines about this enclave or deployment-tool chatter."""

    def predicate(message: str) -> bool:
        return enclave_id in message or _contains_any(message, CONTAINER_MARKERS)

    return predicate


def function_relevance(enclave_id: str, function_name: str) -> MessagePredicate:
    """Keep lines about this enclave; for the status monitor also its health phrases."""
    is_monitor = STATUS_MONITOR_FUNCTION in function_name

    def predicate(message: str) -> bool:
        if enclave_id in message:
            return True
        return is_monitor and _contains_any(message, STATUS_MONITOR_PHRASES)

    return predicate


def is_workflow_error(record: LogRecord) -> bool:
    message = record.message
    if _contains_any(message, ("❌", "failed", "error")):
        return True
    event_type = record.type or ""
    return "Failed" in event_type or "Error" in event_type


def is_function_error(record: LogRecord) -> bool:
    return _contains_any(record.message, ("ERROR", "Exception", "Failed", "Error:"))


def is_container_error(record: LogRecord) -> bool:
    message = record.message
    if _contains_any(message, ("Error:", "FAILED", "ERROR", "Exception")):
        return True
    lowered = message.lower()
    return "error" in lowered and "no error" not in lowered


def is_application_error(record: LogRecord) -> bool:
    if record.is_error or record.type == "stderr":
        return True
    return _contains_any(record.message, ("ERROR", "Exception", "Error:", "FATAL"))


ERROR_PREDICATES: Dict[LogSource, RecordPredicate] = {
    LogSource.STEP_FUNCTIONS: is_workflow_error,
    LogSource.LAMBDA: is_function_error,
    LogSource.ECS: is_container_error,
    LogSource.APPLICATION: is_application_error,
}
