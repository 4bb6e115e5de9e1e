"""
Configuration management for Enclave Control Tower.
"""

import logging
from typing import List, Optional

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="Enclave Control Tower", env="APP_NAME")
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="development", env="ENVIRONMENT")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_workers: int = Field(default=1, env="API_WORKERS")

    # Database
    database_url: str = Field(
        default="sqlite:///./enclave_control_tower.db", env="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")

    # AWS
    aws_region: str = Field(default="us-west-2", env="AWS_REGION")
    aws_account_id: Optional[str] = Field(default=None, env="AWS_ACCOUNT_ID")
    aws_access_key_id: Optional[str] = Field(default=None, env="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Infrastructure naming. Log groups, state machines and functions are
    # derived from this prefix unless overridden below.
    resource_prefix: str = Field(default="enclave-dev", env="RESOURCE_PREFIX")
    destroy_function_name: Optional[str] = Field(
        default=None, env="DESTROY_FUNCTION_NAME"
    )

    # Log fetching
    default_log_limit: int = Field(default=100, env="DEFAULT_LOG_LIMIT")
    max_log_limit: int = Field(default=1000, env="MAX_LOG_LIMIT")
    function_log_window_minutes: int = Field(
        default=120, env="FUNCTION_LOG_WINDOW_MINUTES"
    )
    application_log_window_minutes: int = Field(
        default=240, env="APPLICATION_LOG_WINDOW_MINUTES"
    )
    legacy_log_window_minutes: int = Field(
        default=120, env="LEGACY_LOG_WINDOW_MINUTES"
    )

    # Reconciliation of PENDING_DESTROY enclaves whose trigger never landed
    reconcile_after_minutes: int = Field(default=15, env="RECONCILE_AFTER_MINUTES")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def container_log_group(self) -> str:
        return f"/ecs/{self.resource_prefix}-terraform-runner"

    @property
    def function_log_groups(self) -> List[str]:
        return [
            f"/aws/lambda/{self.resource_prefix}-{name}"
            for name in ("validation", "enclave-trigger", "error-handler", "status-monitor")
        ]

    @property
    def state_machine_arns(self) -> dict:
        """ARNs of the deployment and cleanup workflows, keyed by short name."""
        base = f"arn:aws:states:{self.aws_region}:{self.aws_account_id}:stateMachine"
        return {
            "deployment": f"{base}:{self.resource_prefix}-deployment",
            "cleanup": f"{base}:{self.resource_prefix}-cleanup",
        }

    @property
    def destroy_function(self) -> str:
        return self.destroy_function_name or f"{self.resource_prefix}-enclave-trigger"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure stdlib logging and structlog rendering from settings."""
    config = config or settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
