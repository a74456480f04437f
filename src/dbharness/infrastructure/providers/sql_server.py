"""
SQL Server database provider.

Handles:
- LocalDB instance readiness (create, repair, start) or external servers
- Connections scoped to a database
- Schema deployment through the SchemaDeploymentEngine
- Pre-test data purge (constraints off, delete, constraints on, reseed)
- Per-test post-deployment script execution
"""

from __future__ import annotations

import logging
import time
from contextlib import closing

import pyodbc

from dbharness.domain.config import DatabaseSpec, ProviderSettings
from dbharness.domain.errors import ConfigurationError, DeploymentError
from dbharness.infrastructure.deploy.engine import SchemaDeploymentEngine
from dbharness.infrastructure.deploy.script_runner import execute_batch, fetch_dicts, use_database
from dbharness.infrastructure.providers.base import DatabaseProvider
from dbharness.infrastructure.providers.localdb import LocalDbManager
from dbharness.infrastructure.sql import (
    SqlTemplateManager,
    build_connection_string,
    get_template_manager,
    open_connection,
)

logger = logging.getLogger(__name__)


class SqlServerProvider(DatabaseProvider):
    """
    Provider for SQL Server, either a harness-managed LocalDB instance or
    an external server reached through a configured connection string.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        localdb: LocalDbManager | None = None,
        templates: SqlTemplateManager | None = None,
    ):
        """
        Initialize SQL Server provider.

        Args:
            settings: Provider settings
            localdb: LocalDB manager (built from settings when omitted)
            templates: SQL template manager
        """
        super().__init__(settings)
        self.localdb = localdb or LocalDbManager(executable=settings.sqllocaldb_path)
        self._templates = templates or get_template_manager()
        self.engine = SchemaDeploymentEngine(
            settings,
            self.create_connection,
            self.connection_string,
            self._templates,
        )
        logger.info("SqlServerProvider '%s' created (%s)", settings.provider_id, settings.server_kind.value)

    def initialise_server(self) -> None:
        """
        Make the server usable.

        LocalDB instances are created, repaired and started as needed.
        External servers are assumed ready.

        Raises:
            ConfigurationError: LocalDB mode without an instance name or connection string
            ServerReadinessError: LocalDB missing or no allowed version installed
        """
        if not self.settings.is_local_instance:
            logger.debug("Provider '%s' targets an external server; nothing to initialise", self.provider_id)
            return

        if not self.settings.local_instance_name:
            if self.settings.connection_string:
                logger.debug("LocalDB provider '%s' uses a configured connection string", self.provider_id)
                return
            raise ConfigurationError(
                f"Provider '{self.provider_id}' has neither 'local_instance_name' nor "
                "'connection_string' configured.",
                setting="local_instance_name",
            )

        info = self.localdb.ensure_instance(
            self.settings.local_instance_name,
            self.settings.allowed_versions,
        )
        logger.info("LocalDB instance '%s' ready (version %s, %s)", info.name, info.version, info.state)

    def connection_string(self, database_name: str | None = None) -> str:
        return build_connection_string(self.settings, database_name)

    def create_connection(self, database_name: str | None = None) -> pyodbc.Connection:
        """
        Open a new autocommit connection and switch it to ``database_name``.

        Raises:
            ConfigurationError: If connection settings are incomplete
            pyodbc.Error: If the server rejects the connection or the database
        """
        connection = open_connection(self.connection_string(), self.settings)
        if database_name is not None:
            try:
                use_database(connection, database_name)
            except pyodbc.Error:
                connection.close()
                raise
        return connection

    def setup_database(self, spec: DatabaseSpec) -> None:
        self.engine.deploy(spec)

    def execute_pre_test_tasks(self, spec: DatabaseSpec) -> None:
        """
        Purge all user-table data, then run the post-deployment script when
        it is configured to run per test.

        Raises:
            DeploymentError: If the purge or the script fails
        """
        started = time.perf_counter()
        self.purge_data(spec.name)
        if spec.run_post_script_per_test:
            self.engine.run_post_deployment_script(spec)
        logger.debug("Pre-test tasks for '%s' took %d ms", spec.name, (time.perf_counter() - started) * 1000)

    def purge_data(self, database_name: str) -> int:
        """
        Delete every row from every user table in ``database_name``.

        Returns:
            Number of tables purged
        """
        try:
            with closing(self.create_connection(database_name)) as connection:
                tables = fetch_dicts(connection, self._templates.render("list_user_tables"))
                if not tables:
                    return 0
                execute_batch(connection, self._templates.render("purge_tables", tables=tables))
        except pyodbc.Error as e:
            raise DeploymentError(f"Could not purge data in '{database_name}': {e}", database=database_name) from e

        logger.debug("Purged %d tables in '%s'", len(tables), database_name)
        return len(tables)
