"""
Tests for the configuration domain models.

Covers defaults, validation and lookups for GlobalPolicy, ProviderSettings,
DatabaseSpec and the HarnessConfig aggregate.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dbharness.domain.config import (
    DatabaseSpec,
    GlobalPolicy,
    HarnessConfig,
    ProviderSettings,
    ServerKind,
)


class TestGlobalPolicy:
    """Test cases for GlobalPolicy."""

    def test_defaults(self):
        """Test default policy values."""
        policy = GlobalPolicy()

        assert policy.default_provider_id == "sqlserver"
        assert policy.use_parallel_initialisation is False
        assert policy.deploy_databases_per_group is True
        assert policy.max_workers is None

    def test_max_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            GlobalPolicy(max_workers=0)

    def test_blank_default_provider_rejected(self):
        with pytest.raises(ValidationError):
            GlobalPolicy(default_provider_id="  ")

    def test_policy_is_immutable(self):
        """Policy is read-only after load."""
        policy = GlobalPolicy()
        with pytest.raises(ValidationError):
            policy.use_parallel_initialisation = True


class TestProviderSettings:
    """Test cases for ProviderSettings."""

    def test_defaults(self):
        settings = ProviderSettings()

        assert settings.provider_id == "sqlserver"
        assert settings.provider_type == "sqlserver"
        assert settings.server_kind == ServerKind.LOCALDB
        assert settings.is_local_instance is True
        assert settings.connect_timeout == 30
        assert settings.allowed_versions == ()

    def test_server_kind_from_string(self):
        """Test server kind accepts case-insensitive strings."""
        settings = ProviderSettings(server_kind="External", connection_string="SERVER=db01")

        assert settings.server_kind == ServerKind.EXTERNAL
        assert settings.is_local_instance is False

    def test_blank_strings_become_none(self):
        settings = ProviderSettings(connection_string="  ", local_instance_name="", odbc_driver=" ")

        assert settings.connection_string is None
        assert settings.local_instance_name is None
        assert settings.odbc_driver is None

    def test_allowed_versions_validated(self):
        """Test version strings must be dotted numbers."""
        settings = ProviderSettings(allowed_versions=[" 15.0", "13.1 "])
        assert settings.allowed_versions == ("15.0", "13.1")

        with pytest.raises(ValidationError):
            ProviderSettings(allowed_versions=["15.x"])

    def test_negative_connect_timeout_rejected(self):
        with pytest.raises(ValidationError):
            ProviderSettings(connect_timeout=-1)

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_command_timeout_below_one_rejected(self, timeout):
        with pytest.raises(ValidationError, match="command_timeout"):
            ProviderSettings(command_timeout=timeout)

    def test_command_timeout_optional(self):
        assert ProviderSettings().command_timeout is None
        assert ProviderSettings(command_timeout=1).command_timeout == 1

    def test_provider_type_normalized(self):
        assert ProviderSettings(provider_type=" SqlServer ").provider_type == "sqlserver"


class TestDatabaseSpec:
    """Test cases for DatabaseSpec."""

    def test_defaults(self):
        spec = DatabaseSpec(name="Orders")

        assert spec.schema_artifact_path is None
        assert spec.connection_slot_hint is None
        assert spec.rapid_deploy is False
        assert spec.run_post_script_per_test is True
        assert spec.sqlcmd_variables == {}
        assert spec.data_file_path is None

    def test_name_trimmed(self):
        assert DatabaseSpec(name=" Orders ").name == "Orders"

    @pytest.mark.parametrize("name", ["", "   ", "Bad]Name"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValidationError):
            DatabaseSpec(name=name)

    def test_artifact_path_coerced(self):
        spec = DatabaseSpec(name="Orders", schema_artifact_path="artifacts/Orders.dacpac")
        assert spec.schema_artifact_path == Path("artifacts/Orders.dacpac")

    def test_blank_hint_becomes_none(self):
        assert DatabaseSpec(name="Orders", connection_slot_hint=" ").connection_slot_hint is None


class TestHarnessConfig:
    """Test cases for the HarnessConfig aggregate."""

    def test_provider_id_stamped_from_key(self):
        """Test providers default their id to the key they are registered under."""
        config = HarnessConfig(providers={"secondary": {"server_kind": "external", "connection_string": "SERVER=x"}})

        assert config.provider("secondary").provider_id == "secondary"
        assert config.provider("missing") is None

    def test_explicit_provider_id_kept(self):
        config = HarnessConfig(providers={"a": {"provider_id": "b"}})
        assert config.providers["a"].provider_id == "b"

    def test_duplicate_database_names_rejected(self):
        with pytest.raises(ValidationError, match="more than once"):
            HarnessConfig(databases=[{"name": "Orders"}, {"name": "Orders"}])

    def test_database_lookup(self):
        config = HarnessConfig(databases=[{"name": "Orders"}, {"name": "Audit"}])

        assert config.database("Audit").name == "Audit"
        assert config.database("Missing") is None

    def test_unknown_keys_ignored(self):
        config = HarnessConfig.model_validate({"databases": [{"name": "Orders", "comment": "x"}], "extra": 1})
        assert config.databases[0].name == "Orders"
