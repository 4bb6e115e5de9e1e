"""
AWS client construction.

Clients are built from settings and handed to fetchers, the measurement
extractor and the destroy trigger, so tests can substitute fakes.
"""

from typing import Any, Optional

import boto3
from botocore.config import Config

from .config import Settings, get_settings

# Bounded retries keep a slow backend from stalling a whole log request.
_CLIENT_CONFIG = Config(
    retries={"max_attempts": 2, "mode": "standard"},
    connect_timeout=5,
    read_timeout=15,
)


def create_client(service_name: str, settings: Optional[Settings] = None) -> Any:
    """Create a boto3 client for ``service_name`` in the configured region."""
    settings = settings or get_settings()
    kwargs = {}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    return boto3.client(
        service_name,
        region_name=settings.aws_region,
        config=_CLIENT_CONFIG,
        **kwargs,
    )


def logs_client(settings: Optional[Settings] = None) -> Any:
    return create_client("logs", settings)


def stepfunctions_client(settings: Optional[Settings] = None) -> Any:
    return create_client("stepfunctions", settings)


def lambda_client(settings: Optional[Settings] = None) -> Any:
    return create_client("lambda", settings)
