"""
Harness configuration aggregate.

Bundles the global policy, provider settings by id and database specs by
name into one immutable object passed to the orchestrator.
"""

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .database_spec import DatabaseSpec
from .global_policy import GlobalPolicy
from .provider_settings import ProviderSettings


class HarnessConfig(BaseModel):
    """Resolved, validated configuration for one test run."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    global_policy: GlobalPolicy = Field(default_factory=GlobalPolicy)
    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)
    databases: Tuple[DatabaseSpec, ...] = Field(default_factory=tuple)

    @field_validator("databases")
    @classmethod
    def validate_unique_names(cls, v: Tuple[DatabaseSpec, ...]) -> Tuple[DatabaseSpec, ...]:
        seen: set[str] = set()
        for spec in v:
            if spec.name in seen:
                raise ValueError(f"Database '{spec.name}' is configured more than once")
            seen.add(spec.name)
        return v

    @model_validator(mode="before")
    @classmethod
    def stamp_provider_ids(cls, data):
        """Default each provider's id to the key it is registered under."""
        if isinstance(data, dict) and isinstance(data.get("providers"), dict):
            providers = {}
            for key, value in data["providers"].items():
                if isinstance(value, dict) and "provider_id" not in value:
                    value = {**value, "provider_id": key}
                providers[key] = value
            data = {**data, "providers": providers}
        return data

    def database(self, name: str) -> Optional[DatabaseSpec]:
        """Return the configured spec for ``name``, if any."""
        for spec in self.databases:
            if spec.name == name:
                return spec
        return None

    def provider(self, provider_id: str) -> Optional[ProviderSettings]:
        return self.providers.get(provider_id)
