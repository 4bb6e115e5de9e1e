"""
Provider registry.

The registry is an ordinary value: build it once at process start with
``build_default_registry()`` and pass it to whatever needs it.
"""

from typing import Any, Dict, List, Optional

from .aws_nitro import AwsNitroProvider
from .base import Provider, ValidationResult


class ProviderRegistry:
    """Registered compute providers, keyed by provider id."""

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        self._providers[provider.id] = provider

    def unregister(self, provider_id: str) -> None:
        self._providers.pop(provider_id, None)

    def get(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    def all(self) -> List[Provider]:
        return list(self._providers.values())

    def regions_for(self, provider_id: str) -> List[str]:
        provider = self.get(provider_id)
        return list(provider.regions) if provider else []

    def validate_config(
        self, provider_id: str, config: Dict[str, Any]
    ) -> ValidationResult:
        provider = self.get(provider_id)
        if provider is None:
            return ValidationResult(
                is_valid=False, errors=[f"Provider {provider_id} not found"]
            )
        return provider.validate_config(config)


def build_default_registry() -> ProviderRegistry:
    """Registry with the built-in providers."""
    registry = ProviderRegistry()
    registry.register(AwsNitroProvider())
    return registry
