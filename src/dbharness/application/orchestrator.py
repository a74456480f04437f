"""
Provisioning Orchestrator.

Drives the four lifecycle operations called around test execution:
- group_setup: choose the provider, ready the server, deploy every database
- group_teardown: mark the group finished
- test_setup: reset every database, bind connection slots
- test_teardown: release the test's connections (never raises)

Usage:
    orchestrator = ProvisioningOrchestrator(load_config())
    group = orchestrator.group_setup(GroupDeclaration("OrderTests", databases=("Orders",)))
    with orchestrator.test_scope(group, test_object) as session:
        ...
    orchestrator.group_teardown(group)
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Mapping

from dbharness.application.binding import ConnectionBinder, merge_slots
from dbharness.application.parallel import run_per_database
from dbharness.application.session import TestSession
from dbharness.application.spec_resolution import resolve_effective_specs
from dbharness.domain.config import DatabaseSpec, HarnessConfig, ProviderSettings
from dbharness.domain.errors import AmbiguousProviderError, ConfigurationError, HarnessError
from dbharness.domain.slots import ConnectionSlot, declared_slots
from dbharness.infrastructure.providers import PROVIDER_FACTORIES, DatabaseProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderSettings], DatabaseProvider]


class GroupState(Enum):
    """Lifecycle of a provisioned test group."""

    UNINITIALISED = "uninitialised"
    SERVER_READY = "server_ready"
    DATABASES_DEPLOYED = "databases_deployed"
    TORN_DOWN = "torn_down"


@dataclass(frozen=True)
class GroupDeclaration:
    """What a test group asks for."""

    group_id: str
    databases: tuple[str | DatabaseSpec, ...] = ()
    provider_ids: tuple[str, ...] = ()
    slots: tuple[ConnectionSlot, ...] = ()


@dataclass
class ProvisionedGroup:
    """A test group after group_setup."""

    declaration: GroupDeclaration
    provider_id: str
    provider: DatabaseProvider | None = None
    specs: tuple[DatabaseSpec, ...] = ()
    state: GroupState = GroupState.UNINITIALISED
    timings_ms: dict[str, int] = field(default_factory=dict)

    @property
    def group_id(self) -> str:
        return self.declaration.group_id

    @property
    def database_names(self) -> list[str]:
        return [spec.name for spec in self.specs]


class ProvisioningOrchestrator:
    """
    Root coordinator for database provisioning around tests.

    Holds no mutable state of its own: groups and sessions carry their state,
    so one orchestrator can serve concurrently running groups.
    """

    def __init__(
        self,
        config: HarnessConfig,
        provider_factories: Mapping[str, ProviderFactory] | None = None,
    ):
        """
        Args:
            config: Harness configuration
            provider_factories: Provider constructors keyed by provider type
        """
        self.config = config
        self.provider_factories = dict(PROVIDER_FACTORIES if provider_factories is None else provider_factories)

    @property
    def _parallel(self) -> bool:
        return self.config.global_policy.use_parallel_initialisation

    def resolve_provider_id(self, declaration: GroupDeclaration) -> str:
        """
        Pick the provider id for a group.

        Raises:
            AmbiguousProviderError: More than one provider declared
        """
        if len(declaration.provider_ids) > 1:
            raise AmbiguousProviderError(
                f"Group '{declaration.group_id}' declares {len(declaration.provider_ids)} providers "
                f"({', '.join(declaration.provider_ids)}); only one provider per group is supported."
            )

        policy = self.config.global_policy
        if not declaration.provider_ids:
            return policy.default_provider_id

        requested = declaration.provider_ids[0]
        if policy.deploy_databases_per_group:
            return requested
        if requested != policy.default_provider_id:
            logger.warning(
                "Group '%s' requests provider '%s' but databases are not deployed per group; "
                "using default provider '%s'",
                declaration.group_id, requested, policy.default_provider_id,
            )
        return policy.default_provider_id

    def create_provider(self, provider_id: str) -> DatabaseProvider:
        """
        Instantiate the provider registered under ``provider_id``.

        Raises:
            ConfigurationError: Unknown provider id or provider type
        """
        settings = self.config.provider(provider_id)
        if settings is None:
            raise ConfigurationError(
                f"Provider '{provider_id}' is not configured. "
                f"Configured providers: [{', '.join(self.config.providers)}]",
                setting="providers",
            )
        factory = self.provider_factories.get(settings.provider_type)
        if factory is None:
            raise ConfigurationError(
                f"No provider implementation registered for type '{settings.provider_type}' "
                f"(provider '{provider_id}')",
                setting="provider_type",
            )
        return factory(settings)

    def group_setup(self, declaration: GroupDeclaration) -> ProvisionedGroup:
        """
        Ready the server and deploy every database the group needs.

        Raises:
            AmbiguousProviderError: More than one provider declared
            ConfigurationError: Unknown provider or incomplete settings
            ServerReadinessError: Server can't be made ready
            DeploymentError: Sequential deployment failed
            ProvisioningError: Parallel deployment failed for one or more databases
        """
        started = time.perf_counter()
        group = ProvisionedGroup(declaration, self.resolve_provider_id(declaration))
        logger.info("Setting up group '%s' (provider '%s')", group.group_id, group.provider_id)

        group.provider = self.create_provider(group.provider_id)
        group.provider.initialise_server()
        group.state = GroupState.SERVER_READY
        group.timings_ms["initialise_server"] = int((time.perf_counter() - started) * 1000)

        group.specs = resolve_effective_specs(self.config, declaration.databases, declaration.slots)
        logger.info("Deploying %d database(s) for group '%s': %s",
                    len(group.specs), group.group_id, ", ".join(group.database_names))

        deploy_started = time.perf_counter()
        run_per_database(
            group.specs,
            group.provider.setup_database,
            parallel=self._parallel,
            max_workers=self.config.global_policy.max_workers,
            operation="Deployment",
        )
        group.state = GroupState.DATABASES_DEPLOYED
        group.timings_ms["deploy"] = int((time.perf_counter() - deploy_started) * 1000)

        logger.info("Group '%s' ready in %d ms", group.group_id, (time.perf_counter() - started) * 1000)
        return group

    def group_teardown(self, group: ProvisionedGroup) -> None:
        """Mark the group finished. Databases are left in place for inspection."""
        group.state = GroupState.TORN_DOWN
        logger.info("Group '%s' torn down", group.group_id)

    def test_setup(self, group: ProvisionedGroup, session: TestSession) -> list[str]:
        """
        Reset the group's databases and bind the test object's slots.

        Connections opened before a failure stay on the session so that
        test_teardown still releases them.

        Returns:
            Attributes bound on the test object

        Raises:
            HarnessError: Group not deployed, or a reset or binding failure
        """
        if group.state != GroupState.DATABASES_DEPLOYED or group.provider is None:
            raise HarnessError(f"Group '{group.group_id}' is not deployed (state: {group.state.value})")

        run_per_database(
            group.specs,
            group.provider.execute_pre_test_tasks,
            parallel=self._parallel,
            max_workers=self.config.global_policy.max_workers,
            operation="Pre-test reset",
        )

        slots = merge_slots(declared_slots(session.test_object), group.declaration.slots)
        return ConnectionBinder(group.provider).bind(session, group.specs, slots)

    def test_teardown(self, session: TestSession) -> None:
        """Close every connection opened for the test. Never raises."""
        count = len(session.connections)
        failures = session.close_all()
        if failures:
            logger.warning("%d of %d connection(s) failed to close", failures, count)
        else:
            logger.debug("Released %d connection(s)", count)

    @contextmanager
    def test_scope(self, group: ProvisionedGroup, test_object: Any) -> Iterator[TestSession]:
        """Run test_setup on entry and test_teardown on exit, even on failure."""
        session = TestSession(test_object)
        try:
            self.test_setup(group, session)
            yield session
        finally:
            self.test_teardown(session)
