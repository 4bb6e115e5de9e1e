"""
Attestation Extractor.

Measurement registers (PCRs) are not read from the hardware here; the guest
writes them to its log group as lines like ``[PCR] PCR0: 3f2a...`` and we
pick them up from there.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..logs.fetchers import APPLICATION_LOG_GROUP

logger = structlog.get_logger()

PCR_PATTERN = re.compile(r"\[PCR\]\s+PCR(\d+):\s+([a-fA-F0-9]+)")

# Enclave image, kernel, application, signing certificate.
CANONICAL_INDICES: Tuple[int, ...] = (0, 1, 2, 8)

MSG_FOUND = "PCR values found"
MSG_NONE_IN_LOGS = "No PCR values found in logs"
MSG_NO_STREAMS = "No log streams found for this enclave"
MSG_GROUP_MISSING = "Enclave logs not found - deployment may still be in progress"
MSG_BACKEND_FAILED = "Unable to read enclave logs"


def parse_measurement_line(message: str) -> Optional[Tuple[int, str]]:
    """Return ``(index, hex)`` for a canonical PCR line, else None."""
    match = PCR_PATTERN.search(message)
    if not match:
        return None
    index = int(match.group(1))
    if index not in CANONICAL_INDICES:
        return None
    return index, match.group(2)


@dataclass
class MeasurementResult:
    pcrs: Dict[int, str] = field(default_factory=dict)
    message: str = MSG_NONE_IN_LOGS

    @property
    def complete(self) -> bool:
        return all(index in self.pcrs for index in CANONICAL_INDICES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pcrs": {str(index): value for index, value in sorted(self.pcrs.items())},
            "message": self.message,
        }


def _error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


class MeasurementExtractor:
    """Scans recent guest-application streams for PCR lines.

    Args:
        client: boto3 CloudWatch Logs client
        stream_limit: Streams described
        streams_scanned: Most recent streams actually read
        events_per_stream: Entries read per stream
    """

    def __init__(
        self,
        client: Any,
        stream_limit: int = 10,
        streams_scanned: int = 3,
        events_per_stream: int = 1000,
    ):
        self.client = client
        self.stream_limit = stream_limit
        self.streams_scanned = streams_scanned
        self.events_per_stream = events_per_stream

    def extract(self, enclave_id: str) -> MeasurementResult:
        """Extract the canonical measurements for an enclave. Never raises."""
        log_group = APPLICATION_LOG_GROUP.format(enclave_id=enclave_id)
        try:
            return self._scan(log_group)
        except (BotoCoreError, ClientError) as e:
            if _error_code(e) == "ResourceNotFoundException":
                logger.info("measurement_log_group_missing", enclave_id=enclave_id)
                return MeasurementResult(message=MSG_GROUP_MISSING)
            logger.warning(
                "measurement_extraction_failed", enclave_id=enclave_id, error=str(e)
            )
            return MeasurementResult(message=MSG_BACKEND_FAILED)

    def _scan(self, log_group: str) -> MeasurementResult:
        response = self.client.describe_log_streams(
            logGroupName=log_group,
            orderBy="LastEventTime",
            descending=True,
            limit=self.stream_limit,
        )
        streams = [
            s["logStreamName"]
            for s in response.get("logStreams", [])
            if s.get("logStreamName")
        ]
        if not streams:
            return MeasurementResult(message=MSG_NO_STREAMS)

        result = MeasurementResult()
        for stream in streams[: self.streams_scanned]:
            events = self.client.get_log_events(
                logGroupName=log_group,
                logStreamName=stream,
                limit=self.events_per_stream,
                startFromHead=False,
            ).get("events", [])

            # Pages come back oldest-first.
            for event in reversed(events):
                parsed = parse_measurement_line(event.get("message") or "")
                if parsed is None:
                    continue
                index, value = parsed
                result.pcrs.setdefault(index, value)
                if result.complete:
                    break

            if result.complete:
                break

        result.message = MSG_FOUND if result.pcrs else MSG_NONE_IN_LOGS
        return result
