"""
FastAPI dependency providers.

AWS-backed collaborators are built from settings once per process. Tests
replace them through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Dict

import structlog
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .attestation.measurements import MeasurementExtractor
from .attestation.service import AttestationService
from .aws import lambda_client, logs_client, stepfunctions_client
from .config import Settings, get_settings
from .db.base import get_db
from .db.services import EnclaveService
from .enclaves.catalog import EnclaveCatalog
from .enclaves.enums import LogSource
from .enclaves.triggers import (
    LambdaWorkflowTrigger,
    RecordingWorkflowTrigger,
    WorkflowTrigger,
)
from .logs.aggregator import LogAggregator
from .logs.fetchers import (
    ApplicationLogFetcher,
    ContainerLogFetcher,
    FunctionLogFetcher,
    LogFetcher,
    WorkflowLogFetcher,
)
from .providers.registry import ProviderRegistry

logger = structlog.get_logger()


def build_fetchers(settings: Settings) -> Dict[LogSource, LogFetcher]:
    """One fetcher per source, wired to the configured AWS resources."""
    logs = logs_client(settings)
    return {
        LogSource.ECS: ContainerLogFetcher(logs, settings.container_log_group),
        LogSource.STEP_FUNCTIONS: WorkflowLogFetcher(
            stepfunctions_client(settings), settings.state_machine_arns
        ),
        LogSource.LAMBDA: FunctionLogFetcher(
            logs,
            settings.function_log_groups,
            window_minutes=settings.function_log_window_minutes,
        ),
        LogSource.APPLICATION: ApplicationLogFetcher(
            logs,
            window_minutes=settings.application_log_window_minutes,
            legacy_window_minutes=settings.legacy_log_window_minutes,
        ),
    }


def build_trigger(settings: Settings) -> WorkflowTrigger:
    if not settings.aws_account_id:
        logger.warning(
            "destroy_trigger_not_configured",
            detail="AWS_ACCOUNT_ID unset; destroy requests are only recorded",
        )
        return RecordingWorkflowTrigger()
    return LambdaWorkflowTrigger(lambda_client(settings), settings.destroy_function)


@lru_cache
def _default_fetchers() -> Dict[LogSource, LogFetcher]:
    return build_fetchers(get_settings())


@lru_cache
def _default_extractor() -> MeasurementExtractor:
    return MeasurementExtractor(logs_client(get_settings()))


@lru_cache
def _default_trigger() -> WorkflowTrigger:
    return build_trigger(get_settings())


def get_registry(request: Request) -> ProviderRegistry:
    """Provider registry built in the application lifespan."""
    return request.app.state.registry


def get_fetchers() -> Dict[LogSource, LogFetcher]:
    return _default_fetchers()


def get_extractor() -> MeasurementExtractor:
    return _default_extractor()


def get_trigger() -> WorkflowTrigger:
    return _default_trigger()


def get_catalog(
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
) -> EnclaveCatalog:
    return EnclaveCatalog(db, registry)


def get_aggregator(
    db: Session = Depends(get_db),
    fetchers: Dict[LogSource, LogFetcher] = Depends(get_fetchers),
    settings: Settings = Depends(get_settings),
) -> LogAggregator:
    return LogAggregator(
        EnclaveService(db),
        fetchers,
        max_limit=settings.max_log_limit,
        default_limit=settings.default_log_limit,
    )


def get_attestation(
    db: Session = Depends(get_db),
    extractor: MeasurementExtractor = Depends(get_extractor),
) -> AttestationService:
    return AttestationService(EnclaveService(db), extractor)
