"""
Configuration domain package.

Immutable records supplied by the configuration boundary and consumed by the
orchestrator and providers.
"""

from .models import (
    DatabaseSpec,
    GlobalPolicy,
    HarnessConfig,
    ProviderSettings,
    ServerKind,
)

__all__ = [
    "DatabaseSpec",
    "GlobalPolicy",
    "HarnessConfig",
    "ProviderSettings",
    "ServerKind",
]
