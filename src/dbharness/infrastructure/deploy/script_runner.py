"""
Batch execution against a pyodbc connection.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import pyodbc

from dbharness.domain.errors import DeploymentError
from dbharness.infrastructure.deploy.script_splitter import preview, split_batches
from dbharness.infrastructure.deploy.sqlcmd import apply_sqlcmd
from dbharness.infrastructure.sql import quote_identifier

logger = logging.getLogger(__name__)


def execute_batch(connection: pyodbc.Connection, sql: str) -> None:
    """Execute one batch and drain every result set it produces."""
    cursor = connection.cursor()
    try:
        cursor.execute(sql)
        while cursor.nextset():
            pass
    finally:
        cursor.close()


def fetch_scalar(connection: pyodbc.Connection, sql: str) -> Any:
    cursor = connection.cursor()
    try:
        cursor.execute(sql)
        row = cursor.fetchone()
        return row[0] if row else None
    finally:
        cursor.close()


def use_database(connection: pyodbc.Connection, database: str) -> None:
    """Switch the connection's current database."""
    execute_batch(connection, f"USE {quote_identifier(database)};")


def run_script(
    connection: pyodbc.Connection,
    script: str,
    variables: Mapping[str, str] | None = None,
    database: str | None = None,
    label: str = "script",
) -> int:
    """
    Run a SQLCMD-mode script batch by batch.

    Returns:
        Number of batches executed

    Raises:
        DeploymentError: On the first failing batch
    """
    batches = split_batches(apply_sqlcmd(script, variables))
    for number, batch in enumerate(batches, start=1):
        try:
            execute_batch(connection, batch)
        except pyodbc.Error as e:
            raise DeploymentError(
                f"{label} batch {number}/{len(batches)} failed for database "
                f"'{database}': {e} [{preview(batch)}]",
                database=database,
                statement=batch,
            ) from e
    logger.debug("%s: executed %d batches against '%s'", label, len(batches), database)
    return len(batches)


def fetch_dicts(connection: pyodbc.Connection, sql: str) -> list[dict[str, Any]]:
    """Execute a query and return rows as dictionaries keyed by column name."""
    cursor = connection.cursor()
    try:
        cursor.execute(sql)
        columns = [column[0] for column in cursor.description or ()]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]
    finally:
        cursor.close()
