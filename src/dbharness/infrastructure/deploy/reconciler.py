"""
File-backed database reconciliation.

Brings a database whose data file lives at a known path into a usable
state, using the four-state decision from the domain layer.
"""

from __future__ import annotations

import logging
from contextlib import closing
from pathlib import Path
from typing import Callable

import pyodbc

from dbharness.domain.errors import DeploymentError
from dbharness.domain.reconciliation import ReconcileAction, decide_reconciliation
from dbharness.infrastructure.deploy.script_runner import execute_batch, fetch_scalar
from dbharness.infrastructure.sql import SqlTemplateManager, get_template_manager

logger = logging.getLogger(__name__)


def log_file_for(data_file: Path) -> Path:
    return data_file.with_name(f"{data_file.stem}_log.ldf")


class DatabaseFileReconciler:
    """Attaches, creates or re-creates file-backed databases."""

    def __init__(
        self,
        connection_factory: Callable[[str | None], pyodbc.Connection],
        templates: SqlTemplateManager | None = None,
    ):
        self._connect = connection_factory
        self._templates = templates or get_template_manager()

    def reconcile(self, name: str, data_file: Path | str) -> ReconcileAction:
        """
        Reconcile ``name`` with its data file.

        Returns:
            The action that was taken

        Raises:
            DeploymentError: If the server rejects the action
        """
        data_file = Path(data_file)
        with closing(self._connect(None)) as server:
            try:
                logical_exists = bool(
                    fetch_scalar(server, self._templates.render("database_exists", name=name))
                )
                action = decide_reconciliation(logical_exists, data_file.exists())
                logger.debug(
                    "Reconciling '%s' (logical=%s, physical=%s): %s",
                    name, logical_exists, data_file.exists(), action.value,
                )

                if action == ReconcileAction.ATTACH:
                    execute_batch(server, self._templates.render(
                        "attach_database", name=name, data_file=str(data_file)))
                elif action == ReconcileAction.CREATE:
                    self._create(server, name, data_file)
                elif action == ReconcileAction.DETACH_AND_CREATE:
                    logger.warning("Database '%s' is registered but %s is missing; recreating", name, data_file)
                    execute_batch(server, self._templates.render("detach_database", name=name))
                    self._create(server, name, data_file)
            except pyodbc.Error as e:
                raise DeploymentError(
                    f"Could not reconcile database '{name}' with {data_file}: {e}", database=name
                ) from e
        return action

    def _create(self, server: pyodbc.Connection, name: str, data_file: Path) -> None:
        data_file.parent.mkdir(parents=True, exist_ok=True)
        execute_batch(server, self._templates.render(
            "create_database",
            name=name,
            data_file=str(data_file),
            log_file=str(log_file_for(data_file)),
        ))
