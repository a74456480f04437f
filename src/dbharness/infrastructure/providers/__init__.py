"""
Database providers.

PROVIDER_FACTORIES maps provider ids to constructors taking ProviderSettings.
"""

from dbharness.infrastructure.providers.base import DatabaseProvider
from dbharness.infrastructure.providers.localdb import LocalDbManager, select_localdb_version
from dbharness.infrastructure.providers.sql_server import SqlServerProvider

PROVIDER_FACTORIES = {
    "sqlserver": SqlServerProvider,
}

__all__ = [
    "DatabaseProvider",
    "LocalDbManager",
    "PROVIDER_FACTORIES",
    "SqlServerProvider",
    "select_localdb_version",
]
