"""
Connection registry for the relay.

Tracks every announced connection and its role, and owns the only
identity -> transport table in the system. Lookups are O(1).
"""

from typing import Any, Dict, List, Optional, Tuple

from talkback_relay.core.models import Connection
from talkback_relay.core.types import ClientRole


class ConnectionRegistry:
    """Registry of live connections keyed by connection identity."""

    def __init__(self) -> None:
        # Map identity -> connection record
        self.connections: Dict[str, Connection] = {}

        # Map identity -> transport handle
        self._transports: Dict[str, Any] = {}

    def register(self, identity: str, role: ClientRole, transport: Any) -> Connection:
        """Register a connection, replacing any previous record for identity."""
        connection = Connection(identity=identity, role=role)
        self.connections[identity] = connection
        self._transports[identity] = transport
        return connection

    def unregister(self, identity: str) -> Optional[Connection]:
        """Remove a connection. Unknown identities are ignored."""
        self._transports.pop(identity, None)
        connection = self.connections.pop(identity, None)
        if connection is not None:
            connection.live = False
        return connection

    def get(self, identity: str) -> Optional[Connection]:
        """Get the connection record for identity - O(1) lookup."""
        return self.connections.get(identity)

    def get_transport(self, identity: str) -> Optional[Any]:
        """Get the transport for identity - O(1) lookup."""
        return self._transports.get(identity)

    def list_by_role(self, role: ClientRole) -> List[Connection]:
        """All registered connections with the given role, in registration order."""
        return [c for c in self.connections.values() if c.role == role]

    def live_transports(self, role: ClientRole) -> List[Tuple[str, Any]]:
        """(identity, transport) pairs for live connections with the given role."""
        return [
            (c.identity, self._transports[c.identity])
            for c in self.connections.values()
            if c.role == role and c.live
        ]

    def is_live(self, identity: str) -> bool:
        connection = self.connections.get(identity)
        return connection is not None and connection.live

    def mark_unreachable(self, identity: str) -> None:
        """Record that a send to identity failed; removal waits for disconnect."""
        connection = self.connections.get(identity)
        if connection is not None:
            connection.live = False

    def is_registered(self, identity: str) -> bool:
        """Check if a connection is registered."""
        return identity in self.connections

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        return {
            "total_connections": len(self.connections),
            "producers": len(self.list_by_role(ClientRole.PRODUCER)),
            "observers": len(self.list_by_role(ClientRole.OBSERVER)),
        }
