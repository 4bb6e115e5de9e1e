"""Multi-source log aggregation for enclaves."""

from .aggregator import LogAggregator, parse_log_query, validate_limit
from .fetchers import (
    ApplicationLogFetcher,
    ContainerLogFetcher,
    FunctionLogFetcher,
    LogFetcher,
    WorkflowLogFetcher,
)
from .records import LogRecord, merge_records, sort_records

__all__ = [
    "ApplicationLogFetcher",
    "ContainerLogFetcher",
    "FunctionLogFetcher",
    "LogAggregator",
    "LogFetcher",
    "LogRecord",
    "WorkflowLogFetcher",
    "merge_records",
    "parse_log_query",
    "sort_records",
    "validate_limit",
]
