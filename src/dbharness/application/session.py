"""
Per-test connection tracking.

A TestSession is created for one test, owned by the execution context that
runs it and never shared between threads. It records the connections opened
on behalf of the test and the slots already bound, so teardown can release
everything and a slot is never written twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class TestSession:
    """Connections and bound slots for a single test."""

    __test__ = False  # not a pytest test class

    test_object: Any
    connections: list[Any] = field(default_factory=list)
    bound_slots: set[str] = field(default_factory=set)

    def track(self, connection: Any) -> Any:
        """Register a connection for release at teardown."""
        self.connections.append(connection)
        return connection

    def is_bound(self, attribute: str) -> bool:
        return attribute in self.bound_slots

    def close_all(self) -> int:
        """
        Close every tracked connection and forget it.

        Close failures are logged and never raised.

        Returns:
            Number of connections that failed to close
        """
        failures = 0
        while self.connections:
            connection = self.connections.pop()
            try:
                connection.close()
            except Exception as e:
                failures += 1
                logger.warning("Failed to close connection for %r: %s", self.test_object, e)
        self.bound_slots.clear()
        return failures
