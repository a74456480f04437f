"""
SQL Server infrastructure package.

Provides connection helpers and packaged SQL templates.
"""

from dbharness.infrastructure.sql.connection import (
    build_connection_string,
    detect_odbc_driver,
    open_connection,
    quote_identifier,
    with_database,
)
from dbharness.infrastructure.sql.template_manager import (
    SqlTemplateManager,
    get_template_manager,
)

__all__ = [
    "SqlTemplateManager",
    "build_connection_string",
    "detect_odbc_driver",
    "get_template_manager",
    "open_connection",
    "quote_identifier",
    "with_database",
]
