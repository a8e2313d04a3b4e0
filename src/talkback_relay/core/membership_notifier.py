"""
Directory snapshot broadcasts to observers.
"""

import logging

from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.device_directory import DeviceDirectory
from talkback_relay.core.transport import encode_message, fan_out, send_safely
from talkback_relay.core.types import (
    ClientRole,
    DEFAULT_SEND_TIMEOUT,
    WS_MSG_DEVICE_LIST_UPDATED,
)


class MembershipNotifier:
    """Sends deviceListUpdated messages built from the current directory."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: DeviceDirectory,
        logger: logging.Logger,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.logger = logger
        self.send_timeout = send_timeout

    def _snapshot_message(self) -> str:
        return encode_message(
            WS_MSG_DEVICE_LIST_UPDATED, devices=self.directory.snapshot().to_payload()
        )

    async def broadcast_snapshot(self) -> int:
        """
        Send the current snapshot to every live observer.

        Returns:
            Number of observers that received it
        """
        targets = self.registry.live_transports(ClientRole.OBSERVER)
        if not targets:
            return 0

        results = await fan_out(
            targets, self._snapshot_message(), self.logger, self.send_timeout
        )
        for identity, delivered in results.items():
            if not delivered:
                self.registry.mark_unreachable(identity)

        delivered_count = sum(results.values())
        self.logger.debug(
            f"Directory snapshot ({len(self.directory)} devices) sent to "
            f"{delivered_count}/{len(targets)} observers"
        )
        return delivered_count

    async def send_snapshot(self, identity: str) -> bool:
        """Send the current snapshot to a single connection."""
        transport = self.registry.get_transport(identity)
        if transport is None or not self.registry.is_live(identity):
            return False

        delivered = await send_safely(
            transport, self._snapshot_message(), identity, self.logger, self.send_timeout
        )
        if not delivered:
            self.registry.mark_unreachable(identity)
        return delivered
