"""
Normalized log records and the merge step shared by every source.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enclaves.enums import LogSource


class LogRecord(BaseModel):
    """One log line from any backend, in the common schema.

    Records have no identity and are never deduplicated; overlapping fetch
    windows may yield the same line twice.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Epoch milliseconds; None sorts as oldest.
    timestamp: Optional[int] = None
    message: str
    source: LogSource

    stream: Optional[str] = None
    type: Optional[str] = None
    function: Optional[str] = None
    execution: Optional[str] = None
    state_machine: Optional[str] = Field(default=None, alias="stateMachine")
    log_group: Optional[str] = Field(default=None, alias="logGroup")

    is_pcr: Optional[bool] = Field(default=None, alias="isPCR")
    is_success: Optional[bool] = Field(default=None, alias="isSuccess")
    is_error: Optional[bool] = Field(default=None, alias="isError")

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, absent fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _sort_key(record: LogRecord) -> float:
    return record.timestamp if record.timestamp is not None else float("-inf")


def sort_records(records: Iterable[LogRecord]) -> List[LogRecord]:
    """Newest first; records without a timestamp go last, in input order."""
    return sorted(records, key=_sort_key, reverse=True)


def merge_records(groups: Iterable[Iterable[LogRecord]], limit: int) -> List[LogRecord]:
    """Concatenate record groups, sort newest first and keep at most ``limit``."""
    merged: List[LogRecord] = []
    for group in groups:
        merged.extend(group)
    return sort_records(merged)[: max(limit, 0)]
