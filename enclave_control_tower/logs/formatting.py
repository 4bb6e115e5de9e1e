"""
Rendering of Step Functions history events and guest-application envelopes
into readable log lines.
"""

import json
from typing import Any, Callable, Dict, Tuple

WorkflowEvent = Dict[str, Any]

RAW_PREVIEW_CHARS = 100


def _detail(event: WorkflowEvent, key: str, field: str, default: str = "Unknown") -> Any:
    return (event.get(key) or {}).get(field) or default


def _failure(event: WorkflowEvent, key: str, prefix: str) -> str:
    error = _detail(event, key, "error", "Unknown error")
    cause = (event.get(key) or {}).get("cause")
    return f"❌ {prefix}: {error}{f' - {cause}' if cause else ''}"


EVENT_FORMATTERS: Dict[str, Callable[[WorkflowEvent], str]] = {
    "ExecutionStarted": lambda e: (
        f"Execution started: {_detail(e, 'executionStartedEventDetails', 'input', '')}"
    ),
    "ExecutionSucceeded": lambda e: "Execution completed successfully",
    "ExecutionFailed": lambda e: _failure(e, "executionFailedEventDetails", "Execution failed"),
    "TaskStateEntered": lambda e: (
        f"➡️ Started task: {_detail(e, 'stateEnteredEventDetails', 'name')}"
    ),
    "TaskStateExited": lambda e: (
        f"✅ Completed task: {_detail(e, 'stateExitedEventDetails', 'name')}"
    ),
    "TaskSucceeded": lambda e: (
        f"✅ Task succeeded: {_detail(e, 'taskSucceededEventDetails', 'resourceType')}"
    ),
    "TaskFailed": lambda e: _failure(e, "taskFailedEventDetails", "Task failed"),
    "ChoiceStateEntered": lambda e: (
        f"Evaluating condition: {_detail(e, 'stateEnteredEventDetails', 'name')}"
    ),
    "TaskScheduled": lambda e: (
        f"Scheduled task: {_detail(e, 'taskScheduledEventDetails', 'resourceType')}"
    ),
}


def format_workflow_event(event: WorkflowEvent) -> str:
    """Render a history event; unknown types fall back to a truncated raw dump."""
    event_type = event.get("type", "Unknown")
    formatter = EVENT_FORMATTERS.get(event_type)
    if formatter is not None:
        return formatter(event)

    raw = json.dumps(event, default=str)
    return f"{event_type}: {raw[:RAW_PREVIEW_CHARS]}..."


def parse_application_message(raw: str) -> Tuple[str, str]:
    """
    Parse a guest-application line.

    Lines shaped like ``{"type": "PCR", "message": "...", "timestamp": "..."}``
    render as ``"<timestamp> - [PCR] ..."`` with type ``"pcr"``. Anything else
    passes through unchanged with type ``"application"``.

    Returns:
        (type, message)
    """
    try:
        envelope = json.loads(raw)
    except ValueError:
        return "application", raw

    if not isinstance(envelope, dict):
        return "application", raw
    kind, text = envelope.get("type"), envelope.get("message")
    if not kind or not text:
        return "application", raw

    rendered = f"[{kind}] {text}"
    if envelope.get("timestamp"):
        rendered = f"{envelope['timestamp']} - {rendered}"
    return str(kind).lower(), rendered
