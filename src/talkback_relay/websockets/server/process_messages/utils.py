"""
Utility functions for connection management.

This module provides disconnect cleanup and keepalive pings for the relay
server.
"""

import asyncio
import logging

from talkback_relay.core import RelayCoordinator
from talkback_relay.core.events import Disconnected
from talkback_relay.core.types import ClientRole
from talkback_relay.infrastructure.exceptions import RelayError


class ConnectionUtils:
    """Utility functions for connection management."""

    @staticmethod
    async def cleanup_connection(
        coordinator: RelayCoordinator,
        identity: str,
        logger: logging.Logger,
    ) -> None:
        """Remove a closed connection from the relay state."""
        try:
            await coordinator.dispatch(Disconnected(identity))
        except RelayError as e:
            logger.warning(f"Cleanup for {identity} skipped: {e}")

    @staticmethod
    async def health_monitor(
        coordinator: RelayCoordinator,
        ping_interval: int,
        logger: logging.Logger,
    ) -> None:
        """Send keepalive pings to every announced connection."""
        registry = coordinator.registry
        while True:
            await asyncio.sleep(ping_interval)

            targets = registry.live_transports(ClientRole.PRODUCER) + registry.live_transports(
                ClientRole.OBSERVER
            )
            for identity, websocket in targets:
                try:
                    await websocket.ping()
                except Exception as e:
                    logger.debug(f"Ping to {identity} failed: {e}")
