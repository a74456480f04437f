"""
Global policy domain model.

Process-wide switches loaded once per test run and read-only afterwards.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GlobalPolicy(BaseModel):
    """Process-wide provisioning policy."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    default_provider_id: str = Field("sqlserver", description="Provider used when a group declares none")
    use_parallel_initialisation: bool = Field(
        False,
        description="Deploy and reset independent databases concurrently"
    )
    deploy_databases_per_group: bool = Field(
        True,
        description="Deploy databases once per test group; enables per-group provider overrides"
    )
    max_workers: Optional[int] = Field(
        None,
        description="Upper bound on parallel workers (None = one per database)"
    )

    @field_validator("default_provider_id")
    @classmethod
    def validate_provider_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("default_provider_id cannot be empty")
        return v.strip()

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_workers must be at least 1")
        return v
