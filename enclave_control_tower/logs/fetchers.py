"""
Source fetchers.

Each fetcher translates one AWS log or execution-history backend into
LogRecords for a single enclave. Every backend call is bounded (stream count,
entries per stream, trailing time window); there is no pagination.

Failure policy: a failing stream or execution is skipped, and any failure
escaping ``_collect`` is caught in ``fetch`` and turned into an empty result.
A fetcher never raises.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..enclaves.enums import LogSource
from ..errors import UpstreamSourceError
from .formatting import format_workflow_event, parse_application_message
from .predicates import container_relevance, function_relevance
from .records import LogRecord, sort_records

logger = structlog.get_logger()

Clock = Callable[[], int]

MINUTE_MS = 60 * 1000

APPLICATION_LOG_GROUP = "/aws/ec2/enclave/{enclave_id}"
LEGACY_APPLICATION_LOG_GROUPS = (
    "/aws/nitro-enclave/{enclave_id}/application",
    "/aws/nitro-enclave/{enclave_id}/stdout",
    "/aws/nitro-enclave/{enclave_id}/stderr",
)


def now_ms() -> int:
    return int(time.time() * 1000)


def to_epoch_ms(value: Any) -> Optional[int]:
    """Convert a boto3 timestamp (datetime or epoch ms) to epoch ms."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(value)


class LogFetcher(ABC):
    """Abstract base class for log source fetchers."""

    source: LogSource

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or now_ms

    def fetch(self, enclave_id: str, limit: int) -> List[LogRecord]:
        """Fetch up to ``limit`` records, newest first. Never raises."""
        started = time.monotonic()
        try:
            records = self._collect(enclave_id, limit)
        except Exception as e:
            logger.warning(
                "log_source_failed",
                source=self.source.value,
                enclave_id=enclave_id,
                error=str(e),
            )
            return []

        logger.debug(
            "log_source_fetched",
            source=self.source.value,
            enclave_id=enclave_id,
            count=len(records),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return sort_records(records)[:limit]

    @abstractmethod
    def _collect(self, enclave_id: str, limit: int) -> List[LogRecord]:
        """Gather records from the backend. May raise."""
        pass

    def _call(self, client: Any, operation: str, **kwargs: Any) -> Dict[str, Any]:
        """Invoke a boto3 operation, wrapping botocore errors."""
        try:
            return getattr(client, operation)(**kwargs)
        except (BotoCoreError, ClientError) as e:
            raise UpstreamSourceError(self.source.value, operation, e) from e


class CloudWatchLogFetcher(LogFetcher):
    """Shared stream/entry access for fetchers backed by CloudWatch Logs."""

    def __init__(self, client: Any, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.client = client

    def _recent_streams(self, log_group: str, limit: int) -> List[str]:
        response = self._call(
            self.client,
            "describe_log_streams",
            logGroupName=log_group,
            orderBy="LastEventTime",
            descending=True,
            limit=limit,
        )
        return [
            stream["logStreamName"]
            for stream in response.get("logStreams", [])
            if stream.get("logStreamName")
        ]

    def _stream_events(
        self,
        log_group: str,
        stream: str,
        limit: int,
        window_ms: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {
            "logGroupName": log_group,
            "logStreamName": stream,
            "limit": limit,
            "startFromHead": False,
        }
        if window_ms is not None:
            end = self.clock()
            kwargs["startTime"] = end - window_ms
            kwargs["endTime"] = end

        response = self._call(self.client, "get_log_events", **kwargs)
        return response.get("events", [])

    def _each_stream_event(
        self,
        log_group: str,
        stream_limit: int,
        event_limit: int,
        window_ms: Optional[int] = None,
    ):
        """Yield ``(stream, event)`` pairs, skipping streams that fail."""
        for stream in self._recent_streams(log_group, stream_limit):
            try:
                events = self._stream_events(log_group, stream, event_limit, window_ms)
            except UpstreamSourceError as e:
                logger.warning(
                    "log_stream_failed",
                    source=self.source.value,
                    log_group=log_group,
                    stream=stream,
                    error=str(e),
                )
                continue
            for event in events:
                if event.get("message"):
                    yield stream, event


class ContainerLogFetcher(CloudWatchLogFetcher):
    """Deployment-runner (ECS task) output from a log group shared by all runs."""

    source = LogSource.ECS

    def __init__(
        self,
        client: Any,
        log_group: str,
        stream_limit: int = 10,
        per_stream_cap: int = 50,
        clock: Optional[Clock] = None,
    ):
        super().__init__(client, clock)
        self.log_group = log_group
        self.stream_limit = stream_limit
        self.per_stream_cap = per_stream_cap

    def _collect(self, enclave_id: str, limit: int) -> List[LogRecord]:
        relevant = container_relevance(enclave_id)
        records: List[LogRecord] = []

        for stream, event in self._each_stream_event(
            self.log_group, self.stream_limit, min(limit, self.per_stream_cap)
        ):
            if relevant(event["message"]):
                records.append(
                    LogRecord(
                        timestamp=to_epoch_ms(event.get("timestamp")),
                        message=event["message"],
                        stream=stream,
                        source=self.source,
                    )
                )
        return records


class WorkflowLogFetcher(LogFetcher):
    """Execution history of the deployment and cleanup state machines."""

    source = LogSource.STEP_FUNCTIONS

    def __init__(
        self,
        client: Any,
        state_machines: Dict[str, str],
        execution_limit: int = 10,
        executions_per_machine: int = 3,
        history_limit: int = 20,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self.client = client
        self.state_machines = state_machines
        self.execution_limit = execution_limit
        self.executions_per_machine = executions_per_machine
        self.history_limit = history_limit

    def _collect(self, enclave_id: str, limit: int) -> List[LogRecord]:
        records: List[LogRecord] = []

        for machine, arn in self.state_machines.items():
            try:
                response = self._call(
                    self.client,
                    "list_executions",
                    stateMachineArn=arn,
                    maxResults=self.execution_limit,
                )
            except UpstreamSourceError as e:
                logger.warning("workflow_executions_failed", state_machine=machine, error=str(e))
                continue

            executions = [
                execution
                for execution in response.get("executions", [])
                if enclave_id in (execution.get("name") or "")
            ][: self.executions_per_machine]

            for execution in executions:
                records.extend(self._execution_records(machine, execution))

        return records

    def _execution_records(
        self, machine: str, execution: Dict[str, Any]
    ) -> List[LogRecord]:
        execution_arn = execution.get("executionArn")
        if not execution_arn:
            return []

        try:
            response = self._call(
                self.client,
                "get_execution_history",
                executionArn=execution_arn,
                maxResults=self.history_limit,
                reverseOrder=True,
            )
        except UpstreamSourceError as e:
            logger.warning("workflow_history_failed", execution=execution_arn, error=str(e))
            return []

        return [
            LogRecord(
                timestamp=to_epoch_ms(event.get("timestamp")),
                message=format_workflow_event(event),
                source=self.source,
                type=event.get("type"),
                execution=execution.get("name"),
                state_machine=machine,
            )
            for event in response.get("events", [])
        ]


class FunctionLogFetcher(CloudWatchLogFetcher):
    """Output of the provisioning Lambda functions."""

    source = LogSource.LAMBDA

    def __init__(
        self,
        client: Any,
        log_groups: Sequence[str],
        stream_limit: int = 3,
        events_per_stream: int = 20,
        window_minutes: int = 120,
        clock: Optional[Clock] = None,
    ):
        super().__init__(client, clock)
        self.log_groups = list(log_groups)
        self.stream_limit = stream_limit
        self.events_per_stream = events_per_stream
        self.window_ms = window_minutes * MINUTE_MS

    def _collect(self, enclave_id: str, limit: int) -> List[LogRecord]:
        records: List[LogRecord] = []

        for log_group in self.log_groups:
            function = log_group.rsplit("/", 1)[-1]
            relevant = function_relevance(enclave_id, function)
            try:
                for stream, event in self._each_stream_event(
                    log_group, self.stream_limit, self.events_per_stream, self.window_ms
                ):
                    if relevant(event["message"]):
                        records.append(
                            LogRecord(
                                timestamp=to_epoch_ms(event.get("timestamp")),
                                message=event["message"],
                                stream=stream,
                                source=self.source,
                                function=function,
                            )
                        )
            except UpstreamSourceError as e:
                logger.warning("function_log_group_failed", log_group=log_group, error=str(e))

        return records


class ApplicationLogFetcher(CloudWatchLogFetcher):
    """Guest application output forwarded from inside the enclave.

    Reads the per-enclave log group; when it is missing, probes the legacy
    per-enclave groups (application/stdout/stderr). Finding none is not an error.
    """

    source = LogSource.APPLICATION

    def __init__(
        self,
        client: Any,
        stream_limit: int = 5,
        per_stream_cap: int = 100,
        window_minutes: int = 240,
        legacy_stream_limit: int = 3,
        legacy_events_per_stream: int = 50,
        legacy_window_minutes: int = 120,
        clock: Optional[Clock] = None,
    ):
        super().__init__(client, clock)
        self.stream_limit = stream_limit
        self.per_stream_cap = per_stream_cap
        self.window_ms = window_minutes * MINUTE_MS
        self.legacy_stream_limit = legacy_stream_limit
        self.legacy_events_per_stream = legacy_events_per_stream
        self.legacy_window_ms = legacy_window_minutes * MINUTE_MS

    def _collect(self, enclave_id: str, limit: int) -> List[LogRecord]:
        log_group = APPLICATION_LOG_GROUP.format(enclave_id=enclave_id)
        try:
            streams = self._recent_streams(log_group, self.stream_limit)
        except UpstreamSourceError as e:
            logger.info(
                "application_log_group_missing",
                log_group=log_group,
                error=str(e),
            )
            return self._collect_legacy(enclave_id)

        records: List[LogRecord] = []
        for stream in streams:
            try:
                events = self._stream_events(
                    log_group, stream, min(limit, self.per_stream_cap), self.window_ms
                )
            except UpstreamSourceError as e:
                logger.warning("log_stream_failed", log_group=log_group, stream=stream, error=str(e))
                continue
            for event in events:
                if event.get("message"):
                    records.append(self._envelope_record(log_group, stream, event))
        return records

    def _envelope_record(
        self, log_group: str, stream: str, event: Dict[str, Any]
    ) -> LogRecord:
        kind, message = parse_application_message(event["message"])
        return LogRecord(
            timestamp=to_epoch_ms(event.get("timestamp")),
            message=message,
            stream=stream,
            source=self.source,
            type=kind,
            log_group=log_group,
            is_pcr="[PCR]" in message,
            is_success="[SUCCESS]" in message,
            is_error="[ERROR]" in message,
        )

    def _collect_legacy(self, enclave_id: str) -> List[LogRecord]:
        records: List[LogRecord] = []

        for template in LEGACY_APPLICATION_LOG_GROUPS:
            log_group = template.format(enclave_id=enclave_id)
            kind = log_group.rsplit("/", 1)[-1]
            try:
                for stream, event in self._each_stream_event(
                    log_group,
                    self.legacy_stream_limit,
                    self.legacy_events_per_stream,
                    self.legacy_window_ms,
                ):
                    records.append(
                        LogRecord(
                            timestamp=to_epoch_ms(event.get("timestamp")),
                            message=event["message"],
                            stream=stream,
                            source=self.source,
                            type=kind,
                            log_group=log_group,
                        )
                    )
            except UpstreamSourceError:
                # Expected for enclaves that only ever used the current group.
                continue

        return records
