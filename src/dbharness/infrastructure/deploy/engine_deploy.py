"""
Engine-driven deploy through SqlPackage.

Publishes the artifact with create-if-missing / upgrade-if-existing
semantics and streams SqlPackage output to the log. The provider's
command_timeout bounds the whole publish; an overrunning SqlPackage is
killed.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections import deque
from typing import Mapping

from dbharness.domain.config import DatabaseSpec, ProviderSettings
from dbharness.domain.errors import DeploymentError, ServerReadinessError
from dbharness.infrastructure.deploy.artifact import DeploymentArtifact
from dbharness.infrastructure.sql.connection import to_sqlclient_connection_string

logger = logging.getLogger(__name__)

# Lines kept for the error message when a publish fails
_TAIL_LINES = 20

# Seconds to wait for the output reader once SqlPackage has exited
_READER_GRACE = 5


class EngineDeployer:
    """Runs ``SqlPackage /Action:Publish`` for one database."""

    def __init__(self, settings: ProviderSettings, server_connection_string: str):
        """
        Args:
            settings: Provider settings (SqlPackage location, timeouts)
            server_connection_string: ODBC connection string to the server
        """
        self.settings = settings
        self.server_connection_string = server_connection_string

    def build_command(
        self,
        spec: DatabaseSpec,
        artifact: DeploymentArtifact,
        variables: Mapping[str, str] | None = None,
    ) -> list[str]:
        command = [
            self.settings.sqlpackage_path,
            "/Action:Publish",
            f"/SourceFile:{artifact.source_path}",
            f"/TargetConnectionString:{to_sqlclient_connection_string(self.server_connection_string)}",
            f"/TargetDatabaseName:{spec.name}",
            "/p:CreateNewDatabase=False",
            "/p:BlockOnPossibleDataLoss=False",
        ]
        for name, value in (variables or {}).items():
            if name == "DatabaseName":
                continue  # SqlPackage derives it from /TargetDatabaseName
            command.append(f"/v:{name}={value}")
        return command

    def deploy(
        self,
        spec: DatabaseSpec,
        artifact: DeploymentArtifact,
        variables: Mapping[str, str] | None = None,
    ) -> None:
        """
        Publish ``artifact`` to ``spec.name``.

        Raises:
            ServerReadinessError: If SqlPackage is not installed
            DeploymentError: If the publish exits non-zero or overruns command_timeout
        """
        command = self.build_command(spec, artifact, variables)
        logger.info("Deploying '%s' from package '%s' with SqlPackage", spec.name, artifact.package_name)
        started = time.perf_counter()
        tail: deque[str] = deque(maxlen=_TAIL_LINES)

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            raise ServerReadinessError(
                f"SqlPackage not found at '{self.settings.sqlpackage_path}'. Install SqlPackage or "
                "set 'sqlpackage_path' in the provider settings."
            ) from e

        timeout = self.settings.command_timeout
        with process:
            reader = threading.Thread(
                target=_pump_output,
                args=(process.stdout, spec.name, tail),
                name=f"sqlpackage-{spec.name}",
                daemon=True,
            )
            reader.start()
            try:
                return_code = process.wait(timeout=timeout)
            except subprocess.TimeoutExpired as e:
                process.kill()
                process.wait()
                reader.join(_READER_GRACE)
                raise DeploymentError(
                    f"SqlPackage publish of '{spec.name}' did not finish within {timeout} s and was killed:\n"
                    + "\n".join(tail),
                    database=spec.name,
                ) from e
            reader.join(_READER_GRACE)

        if return_code != 0:
            raise DeploymentError(
                f"SqlPackage publish of '{spec.name}' failed with exit code {return_code}:\n"
                + "\n".join(tail),
                database=spec.name,
            )

        logger.info("Deploying '%s' took %d ms", spec.name, (time.perf_counter() - started) * 1000)


def _pump_output(stream, database: str, tail: deque[str]) -> None:
    for line in stream:
        line = line.rstrip()
        if line:
            tail.append(line)
            logger.info("[%s] %s", database, line)
