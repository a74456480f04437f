"""
Configuration domain models package.
"""

from .database_spec import DatabaseSpec
from .enums import ServerKind
from .global_policy import GlobalPolicy
from .harness_config import HarnessConfig
from .provider_settings import ProviderSettings

__all__ = [
    "DatabaseSpec",
    "GlobalPolicy",
    "HarnessConfig",
    "ProviderSettings",
    "ServerKind",
]
