"""
WebSocket client components for the TalkBack relay.

This module provides one client for both producer and observer roles,
with announce handshake and automatic reconnection.
"""

from .relay_client import RelayClient

__all__ = ["RelayClient"]
