"""
Unit tests for ConnectionRegistry.
"""

import pytest

from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.types import ClientRole

from tests.helpers import make_websocket


@pytest.mark.unit
class TestConnectionRegistry:
    """Test cases for ConnectionRegistry."""

    @pytest.fixture
    def registry(self):
        return ConnectionRegistry()

    def test_register_and_lookup(self, registry):
        """Test a registered connection can be looked up with its transport."""
        websocket = make_websocket("p1")
        connection = registry.register("p1", ClientRole.PRODUCER, websocket)

        assert connection.identity == "p1"
        assert connection.role == ClientRole.PRODUCER
        assert connection.live is True
        assert registry.get("p1") is connection
        assert registry.get_transport("p1") is websocket
        assert registry.is_registered("p1")
        assert registry.is_live("p1")

    def test_list_by_role_keeps_registration_order(self, registry):
        """Test listing connections by role."""
        registry.register("o2", ClientRole.OBSERVER, make_websocket("o2"))
        registry.register("p1", ClientRole.PRODUCER, make_websocket("p1"))
        registry.register("o1", ClientRole.OBSERVER, make_websocket("o1"))

        observers = registry.list_by_role(ClientRole.OBSERVER)
        producers = registry.list_by_role(ClientRole.PRODUCER)

        assert [c.identity for c in observers] == ["o2", "o1"]
        assert [c.identity for c in producers] == ["p1"]

    def test_unregister_marks_connection_dead(self, registry):
        """Test unregister removes the record and its transport."""
        registry.register("o1", ClientRole.OBSERVER, make_websocket("o1"))

        connection = registry.unregister("o1")

        assert connection is not None
        assert connection.live is False
        assert registry.get("o1") is None
        assert registry.get_transport("o1") is None
        assert not registry.is_live("o1")

    def test_unregister_unknown_is_noop(self, registry):
        """Test unregistering an unknown identity does nothing."""
        registry.register("o1", ClientRole.OBSERVER, make_websocket("o1"))

        assert registry.unregister("missing") is None
        assert registry.is_registered("o1")

    def test_mark_unreachable_excludes_from_live_transports(self, registry):
        """Test an unreachable connection stays registered but is skipped."""
        o1 = make_websocket("o1")
        o2 = make_websocket("o2")
        registry.register("o1", ClientRole.OBSERVER, o1)
        registry.register("o2", ClientRole.OBSERVER, o2)

        registry.mark_unreachable("o1")

        assert registry.is_registered("o1")
        assert not registry.is_live("o1")
        assert registry.live_transports(ClientRole.OBSERVER) == [("o2", o2)]

    def test_register_replaces_previous_record(self, registry):
        """Test re-registering an identity replaces its role and transport."""
        first = make_websocket("c1")
        second = make_websocket("c1")
        registry.register("c1", ClientRole.PRODUCER, first)
        registry.register("c1", ClientRole.OBSERVER, second)

        assert registry.get("c1").role == ClientRole.OBSERVER
        assert registry.get_transport("c1") is second
        assert len(registry.connections) == 1

    def test_get_stats(self, registry):
        """Test registry statistics."""
        registry.register("p1", ClientRole.PRODUCER, make_websocket("p1"))
        registry.register("o1", ClientRole.OBSERVER, make_websocket("o1"))
        registry.register("o2", ClientRole.OBSERVER, make_websocket("o2"))

        assert registry.get_stats() == {
            "total_connections": 3,
            "producers": 1,
            "observers": 2,
        }
