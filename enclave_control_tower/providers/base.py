"""
Compute provider interface.

A provider describes where enclaves can run, which configuration keys it
accepts and how that configuration is validated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ConfigOption(BaseModel):
    value: str
    label: str


class ConfigField(BaseModel):
    """Schema of a single provider configuration key."""

    type: Literal["string", "number", "boolean", "select", "text"]
    label: str
    description: Optional[str] = None
    required: bool = False
    options: List[ConfigOption] = Field(default_factory=list)
    pattern: Optional[str] = None
    default_value: Any = None


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class Provider(ABC):
    """Abstract base class for compute providers."""

    id: str
    name: str
    description: str
    regions: List[str]
    config_schema: Dict[str, ConfigField]

    @abstractmethod
    def validate_config(self, config: Dict[str, Any]) -> ValidationResult:
        """Validate provider-specific configuration."""
        pass

    def display_name(self, region: str) -> str:
        """Human-readable name of a region."""
        return region

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "regions": [
                {"id": region, "name": self.display_name(region)}
                for region in self.regions
            ],
            "config_schema": {
                key: field.model_dump(exclude_none=True)
                for key, field in self.config_schema.items()
            },
        }
