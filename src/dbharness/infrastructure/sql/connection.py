"""
SQL Server connection helpers.

Handles:
- ODBC driver detection and fallback
- Connection string building for LocalDB instances and configured servers
- Re-targeting a connection string at a specific database
- Opening pyodbc connections with harness defaults
"""

from __future__ import annotations

import logging
import re

import pyodbc

from dbharness.domain.config import ProviderSettings
from dbharness.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Preferred drivers (newest first)
PREFERRED_DRIVERS = (
    "ODBC Driver 18 for SQL Server",
    "ODBC Driver 17 for SQL Server",
    "ODBC Driver 13 for SQL Server",
    "ODBC Driver 11 for SQL Server",
)

FALLBACK_DRIVERS = (
    "SQL Server Native Client 11.0",
    "SQL Server Native Client 10.0",
    "SQL Server",
)

# key=value pairs; values may be {braced} and contain ';' ('}}' escapes '}')
_PAIR_PATTERN = re.compile(r"\s*([^=;]+?)\s*=\s*(\{(?:[^}]|\}\})*\}|[^;]*)\s*(?:;|$)")
_DATABASE_KEYS = {"database", "initial catalog"}

# Database for server-level work (create, drop, attach, detach)
SERVER_DATABASE = "master"


def detect_odbc_driver() -> str:
    """
    Detect best available ODBC driver.

    Returns:
        ODBC driver name

    Raises:
        ConfigurationError: If no suitable driver found
    """
    drivers = pyodbc.drivers()
    logger.debug("Available ODBC drivers: %s", drivers)

    for driver in PREFERRED_DRIVERS:
        if driver in drivers:
            logger.debug("Using ODBC driver: %s", driver)
            return driver

    for driver in FALLBACK_DRIVERS:
        if driver in drivers:
            logger.warning("Using fallback ODBC driver: %s", driver)
            return driver

    raise ConfigurationError(
        "No SQL Server ODBC driver found. Install ODBC Driver 17 or 18, "
        "or set 'odbc_driver' in the provider settings.",
        setting="odbc_driver",
    )


def quote_identifier(name: str) -> str:
    """Bracket-quote a SQL Server identifier."""
    return "[" + name.replace("]", "]]") + "]"


def parse_connection_string(connection_string: str) -> list[tuple[str, str]]:
    """Split an ODBC connection string into ordered (key, value) pairs."""
    return [
        (match.group(1), match.group(2))
        for match in _PAIR_PATTERN.finditer(connection_string)
        if match.group(1).strip()
    ]


def with_database(connection_string: str, database: str | None) -> str:
    """Return ``connection_string`` re-targeted at ``database``."""
    if database is None:
        return connection_string
    pairs = [
        (key, value)
        for key, value in parse_connection_string(connection_string)
        if key.strip().lower() not in _DATABASE_KEYS
    ]
    pairs.append(("DATABASE", database))
    return ";".join(f"{key}={value}" for key, value in pairs)


def localdb_server(instance_name: str) -> str:
    return f"(localdb)\\{instance_name}"


def build_connection_string(settings: ProviderSettings, database: str | None = None) -> str:
    """
    Build the ODBC connection string for a provider.

    A configured connection string wins. Otherwise a LocalDB provider
    connects to ``(localdb)\\<local_instance_name>`` with integrated security.
    A server-level string (``database=None``) targets master, whatever
    database the configured string names.

    Raises:
        ConfigurationError: If neither a connection string nor a LocalDB
            instance name is configured
    """
    if database is None:
        database = SERVER_DATABASE

    if settings.connection_string:
        return with_database(settings.connection_string, database)

    if not settings.is_local_instance:
        raise ConfigurationError(
            f"Provider '{settings.provider_id}' is not a LocalDB instance and has no "
            "'connection_string'. A connection string is required for external servers.",
            setting="connection_string",
        )
    if not settings.local_instance_name:
        raise ConfigurationError(
            f"Provider '{settings.provider_id}' has neither 'connection_string' nor "
            "'local_instance_name' configured.",
            setting="local_instance_name",
        )

    driver = settings.odbc_driver or detect_odbc_driver()
    parts = [
        f"DRIVER={{{driver}}}",
        f"SERVER={localdb_server(settings.local_instance_name)}",
        "Trusted_Connection=yes",
        "TrustServerCertificate=yes",
        f"DATABASE={database}",
    ]
    return ";".join(parts)


def open_connection(connection_string: str, settings: ProviderSettings) -> pyodbc.Connection:
    """Open an autocommit connection using the provider's timeouts."""
    connection = pyodbc.connect(
        connection_string,
        autocommit=True,
        timeout=settings.connect_timeout,
    )
    if settings.command_timeout:
        connection.timeout = settings.command_timeout
    return connection


_SQLCLIENT_KEYS = {
    "server": "Data Source",
    "address": "Data Source",
    "database": "Initial Catalog",
    "uid": "User ID",
    "pwd": "Password",
    "encrypt": "Encrypt",
    "trustservercertificate": "TrustServerCertificate",
    "app": "Application Name",
}


def _unbrace(value: str) -> str:
    if value.startswith("{") and value.endswith("}"):
        return value[1:-1].replace("}}", "}")
    return value


def _sqlclient_value(value: str) -> str:
    if ";" in value or value != value.strip():
        return '"' + value.replace('"', '""') + '"'
    return value


def to_sqlclient_connection_string(connection_string: str) -> str:
    """
    Translate an ODBC connection string to SqlClient (ADO.NET) syntax.

    Used for tools such as SqlPackage that don't accept ODBC keywords.
    The DRIVER keyword is dropped; unknown keys are passed through.
    """
    parts: list[str] = []
    for key, value in parse_connection_string(connection_string):
        lowered = key.strip().lower()
        value = _unbrace(value.strip())
        if lowered == "driver":
            continue
        if lowered in ("trusted_connection", "integrated security"):
            enabled = value.lower() in ("yes", "true", "sspi")
            parts.append(f"Integrated Security={'True' if enabled else 'False'}")
        elif lowered in _SQLCLIENT_KEYS:
            parts.append(f"{_SQLCLIENT_KEYS[lowered]}={_sqlclient_value(value)}")
        else:
            parts.append(f"{key.strip()}={_sqlclient_value(value)}")
    return ";".join(parts)
