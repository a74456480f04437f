"""
Rapid deploy - recreate a database by re-executing its model script.

Faster than an engine-driven publish for iterative test runs:
1. Drop and recreate the target database (sessions killed first)
2. Split the model script on GO separators
3. Run filegroups, schemas and types, in that order
4. Create tables by retrying failed statements until a fixpoint
5. Create logins, tolerating failures (logins are server-scoped and often exist)
6. Run everything else
"""

from __future__ import annotations

import logging
import time
from contextlib import closing
from pathlib import Path
from typing import Callable, Mapping, Sequence

import pyodbc

from dbharness.domain.config import DatabaseSpec
from dbharness.domain.errors import DeploymentError
from dbharness.infrastructure.deploy.artifact import DeploymentArtifact
from dbharness.infrastructure.deploy.reconciler import log_file_for
from dbharness.infrastructure.deploy.script_runner import execute_batch
from dbharness.infrastructure.deploy.script_splitter import (
    StatementKind,
    bucket_statements,
    preview,
    split_batches,
)
from dbharness.infrastructure.deploy.sqlcmd import apply_sqlcmd
from dbharness.infrastructure.sql import SqlTemplateManager, get_template_manager

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[str | None], pyodbc.Connection]

# Buckets that must complete fully, in order, before tables are attempted
_PARENT_KINDS = (StatementKind.FILEGROUP, StatementKind.SCHEMA, StatementKind.TYPE)


def create_tables_until_fixpoint(
    statements: Sequence[str],
    execute: Callable[[str], None],
    database: str | None = None,
    retryable: tuple[type[BaseException], ...] = (pyodbc.Error,),
) -> int:
    """
    Execute CREATE TABLE statements without a dependency graph.

    Every pending statement is attempted in original order; statements that
    fail (usually because a referenced table doesn't exist yet) are deferred
    to the next round. Stops when nothing is pending, or when a round
    creates nothing, which means the remaining statements can never succeed.
    At most ``len(statements)`` rounds run.

    Returns:
        Number of rounds executed

    Raises:
        DeploymentError: If a round makes no progress
    """
    pending = list(statements)
    round_number = 0

    while pending:
        round_number += 1
        deferred: list[str] = []
        errors: list[BaseException] = []

        for statement in pending:
            try:
                execute(statement)
            except retryable as e:
                deferred.append(statement)
                errors.append(e)

        created = len(pending) - len(deferred)
        logger.debug(
            "Table round %d for '%s': %d created, %d deferred",
            round_number, database, created, len(deferred),
        )

        if created == 0:
            details = "; ".join(
                f"[{preview(statement)}] {error}" for statement, error in zip(deferred, errors)
            )
            raise DeploymentError(
                f"Could not create {len(deferred)} table(s) in database '{database}': "
                f"round {round_number} made no progress. {details}",
                database=database,
                round_number=round_number,
                statement=deferred[0],
            )
        pending = deferred

    return round_number


class RapidDeployer:
    """
    Rebuilds a database from an artifact's model script.

    Never run concurrently for the same database name.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        templates: SqlTemplateManager | None = None,
    ):
        """
        Args:
            connection_factory: Opens a connection; ``None`` means server level
            templates: SQL template manager (packaged templates by default)
        """
        self._connect = connection_factory
        self._templates = templates or get_template_manager()

    def deploy(
        self,
        spec: DatabaseSpec,
        artifact: DeploymentArtifact,
        variables: Mapping[str, str] | None = None,
    ) -> None:
        name = spec.name
        started = time.perf_counter()
        logger.info("Rapid deploying '%s' from package '%s'", name, artifact.package_name)

        with closing(self._connect(None)) as server:
            self.recreate_database(server, spec)

        statements = split_batches(apply_sqlcmd(artifact.model_script, variables))
        buckets = bucket_statements(statements)

        with closing(self._connect(name)) as connection:
            for kind in _PARENT_KINDS:
                self._execute_all(connection, buckets[kind], name, kind)

            rounds = create_tables_until_fixpoint(
                buckets[StatementKind.TABLE],
                lambda statement: execute_batch(connection, statement),
                database=name,
            )
            logger.debug(
                "Created %d tables in '%s' in %d round(s)",
                len(buckets[StatementKind.TABLE]), name, rounds,
            )

            self._create_logins(connection, buckets[StatementKind.LOGIN], name)
            self._execute_all(connection, buckets[StatementKind.OTHER], name, StatementKind.OTHER)

        logger.info(
            "Rapid deploy of '%s' took %d ms (%d statements)",
            name, (time.perf_counter() - started) * 1000, len(statements),
        )

    def recreate_database(self, server: pyodbc.Connection, spec: DatabaseSpec) -> None:
        """Kill sessions, drop the database if present and create it empty."""
        data_file = Path(spec.data_file_path) if spec.data_file_path else None
        try:
            execute_batch(server, self._templates.render("drop_database", name=spec.name))
            if data_file is not None:
                data_file.parent.mkdir(parents=True, exist_ok=True)
            execute_batch(
                server,
                self._templates.render(
                    "create_database",
                    name=spec.name,
                    data_file=str(data_file) if data_file else None,
                    log_file=str(log_file_for(data_file)) if data_file else None,
                ),
            )
        except pyodbc.Error as e:
            raise DeploymentError(
                f"Could not recreate database '{spec.name}': {e}", database=spec.name
            ) from e
        logger.debug("Recreated empty database '%s'", spec.name)

    def _execute_all(
        self,
        connection: pyodbc.Connection,
        statements: Sequence[str],
        database: str,
        kind: StatementKind,
    ) -> None:
        for statement in statements:
            try:
                execute_batch(connection, statement)
            except pyodbc.Error as e:
                raise DeploymentError(
                    f"{kind.value} statement failed in database '{database}': {e} [{preview(statement)}]",
                    database=database,
                    statement=statement,
                ) from e

    def _create_logins(self, connection: pyodbc.Connection, statements: Sequence[str], database: str) -> None:
        for statement in statements:
            try:
                execute_batch(connection, statement)
            except pyodbc.Error as e:
                logger.warning(
                    "Login statement failed for '%s' (continuing): %s [%s]",
                    database, e, preview(statement),
                )
