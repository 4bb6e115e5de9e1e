"""Compute providers and the provider registry."""

from .aws_nitro import AwsNitroProvider
from .base import ConfigField, Provider, ValidationResult
from .registry import ProviderRegistry, build_default_registry

__all__ = [
    "AwsNitroProvider",
    "ConfigField",
    "Provider",
    "ProviderRegistry",
    "ValidationResult",
    "build_default_registry",
]
