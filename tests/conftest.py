"""
Shared fixtures for the dbharness test suite.
"""

import pytest

from dbharness.domain.config import DatabaseSpec, HarnessConfig
from tests.fakes import RecordingProvider


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def harness_config() -> HarnessConfig:
    """Two configured databases on a LocalDB provider."""
    return HarnessConfig(
        providers={"sqlserver": {"local_instance_name": "dbharness"}},
        databases=(
            DatabaseSpec(name="Orders", schema_artifact_path="Orders.dacpac"),
            DatabaseSpec(name="Audit", connection_slot_hint="audit_db"),
        ),
    )
