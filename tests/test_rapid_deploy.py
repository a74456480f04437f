"""
Tests for rapid deploy: fixpoint table creation and the full rebuild flow.
"""

from pathlib import Path

import pyodbc
import pytest

from dbharness.domain.config import DatabaseSpec
from dbharness.domain.errors import DeploymentError
from dbharness.infrastructure.deploy.artifact import DeploymentArtifact
from dbharness.infrastructure.deploy.rapid_deploy import RapidDeployer, create_tables_until_fixpoint
from tests.fakes import FakeConnection


class MissingParent(Exception):
    """Stands in for 'referenced table does not exist'."""


def _executor(dependencies):
    """Executor that fails while a statement's dependencies aren't created yet."""
    created = []

    def execute(statement):
        if any(parent not in created for parent in dependencies.get(statement, ())):
            raise MissingParent(statement)
        created.append(statement)

    return execute, created


class TestCreateTablesUntilFixpoint:
    """Test dependency resolution by retry rounds."""

    def test_chain_resolves_in_three_rounds(self):
        """A references B, B references C: all three created within three rounds."""
        execute, created = _executor({"A": ("B",), "B": ("C",)})

        rounds = create_tables_until_fixpoint(["A", "B", "C"], execute, retryable=(MissingParent,))

        assert rounds <= 3
        assert sorted(created) == ["A", "B", "C"]
        assert created.index("C") < created.index("B") < created.index("A")

    def test_independent_tables_single_round(self):
        execute, created = _executor({})

        assert create_tables_until_fixpoint(["A", "B"], execute, retryable=(MissingParent,)) == 1
        assert created == ["A", "B"]

    def test_no_progress_raises(self):
        """A table referencing a missing table can never be created."""
        execute, created = _executor({"A": ("Z",)})

        with pytest.raises(DeploymentError) as exc_info:
            create_tables_until_fixpoint(["B", "A"], execute, database="Orders", retryable=(MissingParent,))

        error = exc_info.value
        assert created == ["B"]
        assert error.database == "Orders"
        assert error.round_number == 2
        assert error.statement == "A"
        assert "Orders" in str(error)

    def test_non_retryable_error_propagates(self):
        def execute(statement):
            raise KeyError(statement)

        with pytest.raises(KeyError):
            create_tables_until_fixpoint(["A"], execute, retryable=(MissingParent,))

    def test_empty_input(self):
        assert create_tables_until_fixpoint([], lambda s: None) == 0


MODEL = """
CREATE TABLE [dbo].[OrderLines] (Id INT, OrderId INT REFERENCES [dbo].[Orders](Id))
GO
CREATE SCHEMA [sales]
GO
CREATE LOGIN [app] WITH PASSWORD = 'x'
GO
CREATE TABLE [dbo].[Orders] (Id INT PRIMARY KEY)
GO
CREATE VIEW [sales].[OpenOrders] AS SELECT Id FROM [dbo].[Orders]
GO
ALTER DATABASE [$(DatabaseName)] ADD FILEGROUP [FG1]
"""


class TestRapidDeployer:
    """Test the rebuild flow against fake connections."""

    def _deploy(self, spec, on_execute=None):
        connections = []

        def connect(database):
            connection = FakeConnection(database, on_execute=on_execute)
            connections.append(connection)
            return connection

        artifact = DeploymentArtifact(source_path=Path("Orders.dacpac"), package_name="Orders", model_script=MODEL)
        RapidDeployer(connect).deploy(spec, artifact, {"DatabaseName": spec.name})
        return connections

    def test_statement_order(self):
        """Filegroups, schemas, fixpoint tables, logins, then everything else."""
        created = set()

        def on_execute(sql):
            if "OrderLines" in sql and "[dbo].[Orders]" not in created:
                raise pyodbc.ProgrammingError("42S02", "Invalid object name")
            if sql.startswith("CREATE TABLE [dbo].[Orders]"):
                created.add("[dbo].[Orders]")
            if sql.startswith("CREATE LOGIN"):
                raise pyodbc.ProgrammingError("42000", "login exists")

        server, database = self._deploy(DatabaseSpec(name="Orders", rapid_deploy=True), on_execute)

        assert "DROP DATABASE" in server.executed[0]
        assert "CREATE DATABASE [Orders]" in server.executed[1]
        assert server.closed and database.closed
        assert database.database == "Orders"

        executed = [sql.split("(")[0].strip() for sql in database.executed]
        assert executed == [
            "ALTER DATABASE [Orders] ADD FILEGROUP [FG1]",
            "CREATE SCHEMA [sales]",
            "CREATE TABLE [dbo].[OrderLines]",
            "CREATE TABLE [dbo].[Orders]",
            "CREATE TABLE [dbo].[OrderLines]",
            "CREATE LOGIN [app] WITH PASSWORD = 'x'",
            "CREATE VIEW [sales].[OpenOrders] AS SELECT Id FROM [dbo].[Orders]",
        ]

    def test_other_statement_failure_is_fatal(self):
        def on_execute(sql):
            if sql.startswith("CREATE VIEW"):
                raise pyodbc.ProgrammingError("42000", "bad view")

        with pytest.raises(DeploymentError, match="bad view") as exc_info:
            self._deploy(DatabaseSpec(name="Orders", rapid_deploy=True), on_execute)
        assert exc_info.value.statement.startswith("CREATE VIEW")

    def test_data_file_used_for_create(self, tmp_path):
        spec = DatabaseSpec(name="Orders", rapid_deploy=True, data_file_path=tmp_path / "data" / "Orders.mdf")

        server = self._deploy(spec)[0]

        create = server.executed[1]
        assert "Orders.mdf" in create
        assert "Orders_log.ldf" in create
        assert (tmp_path / "data").is_dir()

    def test_recreate_failure_wrapped(self):
        def on_execute(sql):
            if "DROP DATABASE" in sql:
                raise pyodbc.OperationalError("HY000", "in use")

        with pytest.raises(DeploymentError, match="Could not recreate database 'Orders'"):
            self._deploy(DatabaseSpec(name="Orders", rapid_deploy=True), on_execute)
