"""
Log Aggregator.

Runs the source fetchers needed for a query concurrently, each in a worker
thread, and shapes the response. A fetcher never raises, so one failing
backend only empties its own key.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..db.models import EnclaveModel
from ..db.services import EnclaveService
from ..enclaves.enums import LogQuery, LogSource
from ..errors import InternalError, NotFoundError, ValidationError
from .fetchers import LogFetcher
from .predicates import ERROR_PREDICATES
from .records import LogRecord, merge_records

logger = structlog.get_logger()

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

# Alternate names accepted for the ``type`` filter.
QUERY_ALIASES: Dict[str, LogQuery] = {
    "container": LogQuery.ECS,
    "workflow": LogQuery.STEP_FUNCTIONS,
    "function": LogQuery.LAMBDA,
}

FETCHED_SOURCES: Sequence[LogSource] = (
    LogSource.ECS,
    LogSource.STEP_FUNCTIONS,
    LogSource.LAMBDA,
    LogSource.APPLICATION,
)

SOURCES_FOR_QUERY: Dict[LogQuery, Sequence[LogSource]] = {
    LogQuery.ALL: FETCHED_SOURCES,
    LogQuery.ECS: (LogSource.ECS,),
    LogQuery.STEP_FUNCTIONS: (LogSource.STEP_FUNCTIONS,),
    LogQuery.LAMBDA: (LogSource.LAMBDA,),
    LogQuery.APPLICATION: (LogSource.APPLICATION,),
    LogQuery.ERRORS: FETCHED_SOURCES,
}


def parse_log_query(value: Optional[str]) -> LogQuery:
    """Parse the ``type`` filter, accepting the descriptive aliases."""
    if value is None or value == "":
        return LogQuery.ALL
    normalized = value.strip().lower()
    if normalized in QUERY_ALIASES:
        return QUERY_ALIASES[normalized]
    try:
        return LogQuery(normalized)
    except ValueError:
        accepted = sorted({q.value for q in LogQuery} | set(QUERY_ALIASES))
        raise ValidationError(
            f"Invalid log type '{value}'", accepted=accepted
        ) from None


def validate_limit(
    limit: Optional[int], max_limit: int = MAX_LIMIT, default: int = DEFAULT_LIMIT
) -> int:
    if limit is None:
        return default
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")
    return limit


def error_view(
    results: Mapping[LogSource, List[LogRecord]],
    enclave: EnclaveModel,
    limit: int,
    now_ms: int,
) -> List[LogRecord]:
    """Apply each source's error predicate and add the stored error, if any."""
    groups = [
        [record for record in results.get(source, []) if predicate(record)]
        for source, predicate in ERROR_PREDICATES.items()
    ]

    if enclave.error_message:
        groups.append(
            [
                LogRecord(
                    timestamp=now_ms,
                    message=f"🔴 Enclave Error: {enclave.error_message}",
                    source=LogSource.STATUS,
                    type="error",
                    log_group="enclave-status",
                )
            ]
        )

    return merge_records(groups, limit)


class LogAggregator:
    """Fans out to the source fetchers and merges their results.

    Args:
        enclaves: Enclave store used for name/status metadata
        fetchers: One fetcher per fetched source
        max_limit: Largest accepted ``limit``
        default_limit: ``limit`` used when the caller gives none
        clock: Epoch-ms clock for the synthetic error record
    """

    def __init__(
        self,
        enclaves: EnclaveService,
        fetchers: Mapping[LogSource, LogFetcher],
        max_limit: int = MAX_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.enclaves = enclaves
        self.fetchers = dict(fetchers)
        self.max_limit = max_limit
        self.default_limit = default_limit
        self.clock = clock or (lambda: int(time.time() * 1000))

    def _load(self, enclave_id: str) -> EnclaveModel:
        try:
            enclave = self.enclaves.get_enclave(enclave_id)
        except SQLAlchemyError as e:
            logger.error("enclave_lookup_failed", enclave_id=enclave_id, error=str(e))
            raise InternalError("Failed to load enclave") from e
        if enclave is None:
            raise NotFoundError("Enclave not found")
        return enclave

    async def _fetch_sources(
        self, enclave_id: str, sources: Sequence[LogSource], limit: int
    ) -> Dict[LogSource, List[LogRecord]]:
        active = [source for source in sources if source in self.fetchers]
        results = await asyncio.gather(
            *(
                asyncio.to_thread(self.fetchers[source].fetch, enclave_id, limit)
                for source in active
            )
        )
        fetched = dict(zip(active, results))
        for source in sources:
            fetched.setdefault(source, [])
        return fetched

    async def fetch_logs(
        self,
        enclave_id: str,
        source_filter: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Fetch logs for an enclave.

        ``all`` returns every source under its own key plus the error view
        under ``errors``; a named source returns just that key; ``errors``
        returns only the error view.

        Raises:
            ValidationError: Unknown filter or limit out of range
            NotFoundError: Unknown enclave
            InternalError: Enclave lookup failed
        """
        query = parse_log_query(source_filter)
        limit = validate_limit(limit, self.max_limit, self.default_limit)
        enclave = self._load(enclave_id)

        fetched = await self._fetch_sources(enclave_id, SOURCES_FOR_QUERY[query], limit)

        logs: Dict[str, List[Dict[str, Any]]] = {}
        if query is not LogQuery.ERRORS:
            for source, records in fetched.items():
                logs[source.value] = [r.to_dict() for r in records]
        if query in (LogQuery.ALL, LogQuery.ERRORS):
            # Built from the records already fetched above.
            records = error_view(fetched, enclave, limit, self.clock())
            logs[LogQuery.ERRORS.value] = [r.to_dict() for r in records]

        logger.info(
            "enclave_logs_fetched",
            enclave_id=enclave_id,
            query=query.value,
            limit=limit,
            counts={key: len(value) for key, value in logs.items()},
        )

        return {
            "enclave_id": enclave.id,
            "enclave_name": enclave.name,
            "enclave_status": enclave.status,
            "logs": logs,
        }
