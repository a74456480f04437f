"""
Tests for SQLCMD handling and deployment script splitting/classification.
"""

import pytest

from dbharness.infrastructure.deploy.script_splitter import (
    StatementKind,
    bucket_statements,
    classify_statement,
    preview,
    split_batches,
)
from dbharness.infrastructure.deploy.sqlcmd import apply_sqlcmd


class TestApplySqlcmd:
    """Test SQLCMD variable and directive handling."""

    def test_setvar_defaults_substituted(self):
        script = ':setvar Owner "dbo"\nSELECT * FROM [$(Owner)].[T];'
        assert apply_sqlcmd(script) == "SELECT * FROM [dbo].[T];"

    def test_supplied_variables_override_setvar(self):
        script = ':setvar DatabaseName "Default"\nUSE [$(DatabaseName)];'
        assert apply_sqlcmd(script, {"DatabaseName": "Orders"}) == "USE [Orders];"

    def test_directives_removed(self):
        script = ":on error exit\n:r .\\Other.sql\nSELECT 1;"
        assert apply_sqlcmd(script) == "SELECT 1;"

    def test_unknown_variable_left_unchanged(self):
        assert apply_sqlcmd("SELECT '$(Missing)';") == "SELECT '$(Missing)';"

    def test_quoted_value_with_escaped_quotes(self):
        script = ':setvar Greeting "say ""hi"""\nPRINT \'$(Greeting)\';'
        assert apply_sqlcmd(script) == "PRINT 'say \"hi\"';"

    def test_bare_setvar_value(self):
        assert apply_sqlcmd(":setvar Size 10\nSELECT $(Size);") == "SELECT 10;"


class TestSplitBatches:
    """Test GO batch splitting."""

    def test_split_on_go_lines(self):
        script = "CREATE TABLE a (x int)\nGO\nCREATE TABLE b (y int)\ngo\n"
        assert split_batches(script) == ["CREATE TABLE a (x int)", "CREATE TABLE b (y int)"]

    def test_go_with_count_and_comment(self):
        script = "SELECT 1\nGO 2\nSELECT 2\n  GO -- done\n"
        assert split_batches(script) == ["SELECT 1", "SELECT 2"]

    def test_go_inside_identifier_not_split(self):
        script = "SELECT GOAL FROM t\nGO"
        assert split_batches(script) == ["SELECT GOAL FROM t"]

    def test_empty_and_comment_only_batches_dropped(self):
        script = "GO\n-- nothing here\nGO\n\nGO\nSELECT 1"
        assert split_batches(script) == ["SELECT 1"]


class TestClassifyStatement:
    """Test statement classification into rapid deploy buckets."""

    @pytest.mark.parametrize("statement, kind", [
        ("ALTER DATABASE [$(DatabaseName)] ADD FILEGROUP [FG1]", StatementKind.FILEGROUP),
        ("ALTER DATABASE [Orders]\n    ADD FILE (NAME = f1) TO FILEGROUP [FG1]", StatementKind.FILEGROUP),
        ("CREATE SCHEMA [sales] AUTHORIZATION [dbo]", StatementKind.SCHEMA),
        ("CREATE TYPE [dbo].[Ids] AS TABLE (Id INT)", StatementKind.TYPE),
        ("CREATE TABLE [dbo].[Orders] (Id INT)", StatementKind.TABLE),
        ("create login [app] with password = 'x'", StatementKind.LOGIN),
        ("CREATE VIEW v AS SELECT 1 AS x", StatementKind.OTHER),
        ("ALTER DATABASE [Orders] SET RECOVERY SIMPLE", StatementKind.OTHER),
    ])
    def test_kinds(self, statement, kind):
        assert classify_statement(statement) == kind

    def test_leading_comments_ignored(self):
        statement = "-- Orders table\n/* generated\n   by tooling */\nCREATE TABLE [dbo].[Orders] (Id INT)"
        assert classify_statement(statement) == StatementKind.TABLE

    def test_bucket_keeps_order_and_all_kinds(self):
        buckets = bucket_statements([
            "CREATE TABLE b (x int)",
            "CREATE SCHEMA s",
            "CREATE TABLE a (x int)",
        ])

        assert set(buckets) == set(StatementKind)
        assert buckets[StatementKind.TABLE] == ["CREATE TABLE b (x int)", "CREATE TABLE a (x int)"]
        assert buckets[StatementKind.SCHEMA] == ["CREATE SCHEMA s"]
        assert buckets[StatementKind.LOGIN] == []


class TestPreview:
    def test_preview_flattens_and_truncates(self):
        text = preview("-- c\nCREATE TABLE   t\n(x int)", limit=15)

        assert text == "CREATE TABLE..."
        assert len(text) == 15
