"""
Tests for file-backed database reconciliation against fake connections.
"""

import pyodbc
import pytest

from dbharness.domain.errors import DeploymentError
from dbharness.domain.reconciliation import ReconcileAction
from dbharness.infrastructure.deploy.reconciler import DatabaseFileReconciler, log_file_for
from tests.fakes import FakeConnection


def _reconcile(logical_exists, data_file, fail_on=None):
    def on_execute(sql):
        if fail_on and fail_on in sql:
            raise pyodbc.ProgrammingError("42000", "rejected")
        if "AS database_exists" in sql:
            return ["database_exists"], [(1 if logical_exists else 0,)]
        return None

    server = FakeConnection(on_execute=on_execute)
    action = DatabaseFileReconciler(lambda database: server).reconcile("Orders", data_file)
    return action, server


class TestDatabaseFileReconciler:
    """Each state executes exactly its action."""

    def test_attach(self, tmp_path):
        data_file = tmp_path / "Orders.mdf"
        data_file.write_bytes(b"")

        action, server = _reconcile(False, data_file)

        assert action == ReconcileAction.ATTACH
        assert "FOR ATTACH" in server.executed[-1]
        assert server.closed

    def test_create(self, tmp_path):
        data_file = tmp_path / "data" / "Orders.mdf"

        action, server = _reconcile(False, data_file)

        assert action == ReconcileAction.CREATE
        assert "Orders_log.ldf" in server.executed[-1]
        assert data_file.parent.is_dir()

    def test_detach_and_create(self, tmp_path):
        action, server = _reconcile(True, tmp_path / "Orders.mdf")

        assert action == ReconcileAction.DETACH_AND_CREATE
        assert "sp_detach_db" in server.executed[1]
        assert server.executed[2].startswith("CREATE DATABASE [Orders]")

    def test_none(self, tmp_path):
        data_file = tmp_path / "Orders.mdf"
        data_file.write_bytes(b"")

        action, server = _reconcile(True, data_file)

        assert action == ReconcileAction.NONE
        assert len(server.executed) == 1

    def test_server_error_wrapped(self, tmp_path):
        data_file = tmp_path / "Orders.mdf"
        data_file.write_bytes(b"")

        with pytest.raises(DeploymentError, match="Could not reconcile database 'Orders'"):
            _reconcile(False, data_file, fail_on="FOR ATTACH")

    def test_log_file_name(self, tmp_path):
        assert log_file_for(tmp_path / "Orders.mdf") == tmp_path / "Orders_log.ldf"
