"""
Error taxonomy for the provisioning harness.

Every fatal error raised by the harness derives from HarnessError and
carries enough context to diagnose the failure without re-running:
- ConfigurationError: missing or contradictory settings
- ServerReadinessError: engine missing, no installed version allowed
- DeploymentError: schema deployment failed (database, round, statement)
- BindingError: a connection slot could not be populated
- AmbiguousProviderError: more than one provider declared for a group
- ProvisioningError: aggregate of failures from a parallel fan-out
"""

from __future__ import annotations

from typing import Iterable, Mapping


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """A required setting is missing or settings contradict each other."""

    def __init__(self, message: str, setting: str | None = None):
        super().__init__(message)
        self.setting = setting


class ServerReadinessError(HarnessError):
    """The database server cannot be made ready. Never retried."""

    def __init__(
        self,
        message: str,
        configured_versions: Iterable[str] = (),
        installed_versions: Iterable[str] = (),
    ):
        super().__init__(message)
        self.configured_versions = tuple(configured_versions)
        self.installed_versions = tuple(installed_versions)


class DeploymentError(HarnessError):
    """Schema deployment for a single database failed."""

    def __init__(
        self,
        message: str,
        database: str | None = None,
        round_number: int | None = None,
        statement: str | None = None,
    ):
        super().__init__(message)
        self.database = database
        self.round_number = round_number
        self.statement = statement


class BindingError(HarnessError):
    """A connection slot on a test object could not be populated."""

    def __init__(self, message: str, attribute: str | None = None, shape: object = None):
        super().__init__(message)
        self.attribute = attribute
        self.shape = shape


class AmbiguousProviderError(HarnessError, NotImplementedError):
    """A test group declared more than one provider."""


class ProvisioningError(HarnessError):
    """One or more databases failed during a fan-out step."""

    def __init__(self, message: str, errors: Mapping[str, BaseException]):
        details = "; ".join(f"{name}: {exc}" for name, exc in errors.items())
        super().__init__(f"{message} ({details})" if details else message)
        self.errors = dict(errors)
