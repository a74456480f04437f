"""
Tests for per-test connection tracking.
"""

from dbharness.application.session import TestSession
from tests.fakes import FakeConnection


class TestTestSession:
    """Test tracking and release of connections."""

    def test_close_all_empties_session(self):
        session = TestSession(object())
        connections = [session.track(FakeConnection("Orders")), session.track(FakeConnection("Audit"))]
        session.bound_slots.add("OrdersConnection")

        assert session.close_all() == 0
        assert all(connection.closed for connection in connections)
        assert session.connections == []
        assert session.bound_slots == set()

    def test_close_failures_logged_not_raised(self, caplog):
        session = TestSession("test")
        good = session.track(FakeConnection("Orders"))
        session.track(FakeConnection("Audit", fail_close=True))

        assert session.close_all() == 1
        assert good.closed
        assert session.connections == []
        assert any("Failed to close connection" in message for message in caplog.messages)

    def test_new_session_is_empty(self):
        session = TestSession(object())
        assert session.connections == [] and session.bound_slots == set()
