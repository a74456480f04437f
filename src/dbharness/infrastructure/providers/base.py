"""
Database provider contract.

A provider manages one database server and everything the orchestrator
needs from it. Implementations must tolerate ``initialise_server`` being
called repeatedly (once per test group) and concurrent ``setup_database``
and ``execute_pre_test_tasks`` calls for different database names.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from dbharness.domain.config import DatabaseSpec, ProviderSettings


class DatabaseProvider(ABC):
    """Abstract database server provider."""

    def __init__(self, settings: ProviderSettings):
        self.settings = settings

    @property
    def provider_id(self) -> str:
        return self.settings.provider_id

    @abstractmethod
    def initialise_server(self) -> None:
        """Bring the server to a usable state. Idempotent."""

    @abstractmethod
    def setup_database(self, spec: DatabaseSpec) -> None:
        """Deploy ``spec`` (schema, data, scripts) from its artifact."""

    @abstractmethod
    def create_connection(self, database_name: str | None = None) -> Any:
        """Open a new connection scoped to ``database_name`` (server level when None)."""

    @abstractmethod
    def execute_pre_test_tasks(self, spec: DatabaseSpec) -> None:
        """Reset ``spec``'s data before a test."""

    @abstractmethod
    def connection_string(self, database_name: str | None = None) -> str:
        """Connection string scoped to ``database_name`` (server level when None)."""
