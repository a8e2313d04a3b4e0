"""
WebSocket server implementation for the TalkBack relay.

This module contains the main AudioRelayServer class and related components.
"""

from .relay_server import AudioRelayServer

__all__ = [
    "AudioRelayServer",
]
