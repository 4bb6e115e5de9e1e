"""Provider API Routes."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ..dependencies import get_registry
from ..errors import NotFoundError
from .registry import ProviderRegistry

router = APIRouter(prefix="/providers", tags=["Providers"])


@router.get("")
async def list_providers(
    registry: ProviderRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    """List registered compute providers."""
    return [provider.to_dict() for provider in registry.all()]


@router.get("/{provider_id}")
async def get_provider(
    provider_id: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Get a provider with its regions and config schema."""
    provider = registry.get(provider_id)
    if provider is None:
        raise NotFoundError("Provider not found")
    return provider.to_dict()
