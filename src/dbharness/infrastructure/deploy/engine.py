"""
Schema Deployment Engine.

Deploys a database's structure and data from its artifact:
1. Reconcile the data file (file-backed databases, engine path)
2. Pre-deployment script, tolerant of a database that doesn't exist yet
3. Structural deploy: rapid (model script) or engine-driven (SqlPackage)
4. Post-deployment script, unless deferred to per-test execution

A database without an artifact is only brought into existence: attached
or created on its data file when one is configured, created empty otherwise.
The engine path publishes packaged (.dacpac) artifacts only.

Usage:
    engine = SchemaDeploymentEngine(settings, provider.create_connection, provider.connection_string)
    engine.deploy(spec)
"""

from __future__ import annotations

import logging
import time
from contextlib import closing
from pathlib import Path
from typing import Callable

import pyodbc

from dbharness.domain.config import DatabaseSpec, ProviderSettings
from dbharness.domain.errors import DeploymentError
from dbharness.infrastructure.deploy.artifact import DeploymentArtifact, load_artifact, unpacked_artifact
from dbharness.infrastructure.deploy.engine_deploy import EngineDeployer
from dbharness.infrastructure.deploy.rapid_deploy import RapidDeployer
from dbharness.infrastructure.deploy.reconciler import DatabaseFileReconciler
from dbharness.infrastructure.deploy.script_runner import execute_batch, run_script, use_database
from dbharness.infrastructure.sql import SqlTemplateManager, get_template_manager

logger = logging.getLogger(__name__)


def sqlcmd_variables(spec: DatabaseSpec) -> dict[str, str]:
    """Built-in variables overlaid with the spec's own."""
    return {"DatabaseName": spec.name, **spec.sqlcmd_variables}


class SchemaDeploymentEngine:
    """Deploys DatabaseSpecs through a provider's connections."""

    def __init__(
        self,
        settings: ProviderSettings,
        connection_factory: Callable[[str | None], pyodbc.Connection],
        connection_string_factory: Callable[[str | None], str],
        templates: SqlTemplateManager | None = None,
    ):
        """
        Args:
            settings: Provider settings
            connection_factory: Opens a connection scoped to a database (None = server)
            connection_string_factory: Connection string scoped to a database (None = server)
            templates: SQL template manager
        """
        self.settings = settings
        self._connect = connection_factory
        self._connection_string = connection_string_factory
        self._templates = templates or get_template_manager()
        self._rapid = RapidDeployer(connection_factory, self._templates)
        self._reconciler = DatabaseFileReconciler(connection_factory, self._templates)

    def deploy(self, spec: DatabaseSpec) -> None:
        """
        Deploy ``spec``.

        Raises:
            DeploymentError: If any fatal deployment step fails
        """
        started = time.perf_counter()

        if spec.schema_artifact_path is None:
            if spec.data_file_path:
                self._reconciler.reconcile(spec.name, spec.data_file_path)
            else:
                self.ensure_database(spec.name)
            logger.info("No deployment artifact configured for '%s'; database left empty", spec.name)
            return

        if not spec.rapid_deploy and Path(spec.schema_artifact_path).is_dir():
            raise DeploymentError(
                f"Cannot publish '{spec.name}' from directory {spec.schema_artifact_path}: "
                "SqlPackage needs a .dacpac file. Point 'schema_artifact_path' at the "
                "package or enable 'rapid_deploy'.",
                database=spec.name,
            )

        # Rapid deploy drops and recreates on the data file itself
        if spec.data_file_path and not spec.rapid_deploy:
            self._reconciler.reconcile(spec.name, spec.data_file_path)

        if spec.rapid_deploy:
            with unpacked_artifact(spec.schema_artifact_path) as artifact:
                self._deploy(spec, artifact, self._rapid.deploy)
        else:
            artifact = load_artifact(spec.schema_artifact_path)
            deployer = EngineDeployer(self.settings, self._connection_string(None))
            self._deploy(spec, artifact, deployer.deploy)

        logger.info("Total deployment time for '%s' was %d ms", spec.name, (time.perf_counter() - started) * 1000)

    def _deploy(
        self,
        spec: DatabaseSpec,
        artifact: DeploymentArtifact,
        structural: Callable[[DatabaseSpec, DeploymentArtifact, dict[str, str]], None],
    ) -> None:
        variables = sqlcmd_variables(spec)
        if artifact.pre_script:
            self.run_pre_deployment_script(spec, artifact)
        structural(spec, artifact, variables)
        if artifact.post_script and not spec.run_post_script_per_test:
            self.run_post_deployment_script(spec, artifact)

    def ensure_database(self, name: str) -> None:
        """Create ``name`` empty if it doesn't exist."""
        with closing(self._connect(None)) as server:
            try:
                execute_batch(server, self._templates.render("create_database_if_missing", name=name))
            except pyodbc.Error as e:
                raise DeploymentError(f"Could not create database '{name}': {e}", database=name) from e

    def run_pre_deployment_script(self, spec: DatabaseSpec, artifact: DeploymentArtifact) -> None:
        """
        Run the pre-deployment script against the target database.

        The database may not exist yet; in that case the script runs against
        the server's default database and its failures are only logged.
        """
        with closing(self._connect(None)) as connection:
            database_exists = True
            try:
                use_database(connection, spec.name)
            except pyodbc.Error as e:
                database_exists = False
                logger.info(
                    "Could not change connection to database '%s' before pre-deployment script. "
                    "Database may not yet exist. (%s)",
                    spec.name, e,
                )

            try:
                run_script(
                    connection,
                    artifact.pre_script or "",
                    sqlcmd_variables(spec),
                    database=spec.name,
                    label="Pre-deployment script",
                )
            except DeploymentError as e:
                if database_exists:
                    raise
                logger.warning("Pre-deployment script failed before '%s' existed (continuing): %s", spec.name, e)

    def run_post_deployment_script(self, spec: DatabaseSpec, artifact: DeploymentArtifact | None = None) -> bool:
        """
        Run the post-deployment script (loading the artifact fresh when not given).

        Returns:
            True if a post-deployment script was executed
        """
        if artifact is None:
            if spec.schema_artifact_path is None:
                return False
            artifact = load_artifact(spec.schema_artifact_path)
        if not artifact.post_script:
            return False

        with closing(self._connect(spec.name)) as connection:
            run_script(
                connection,
                artifact.post_script,
                sqlcmd_variables(spec),
                database=spec.name,
                label="Post-deployment script",
            )
        logger.debug("Post-deployment script executed for '%s'", spec.name)
        return True
