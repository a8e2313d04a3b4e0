"""
Routing of start/stop listening commands from observers to producers.

Forwarded commands are fire-and-forget: a successful result means the
command was handed to a live producer connection, not that capture began.
"""

import logging
from typing import Optional

from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.device_directory import DeviceDirectory
from talkback_relay.core.membership_notifier import MembershipNotifier
from talkback_relay.core.models import CommandResult
from talkback_relay.core.stream_arbiter import ActiveStreamArbiter
from talkback_relay.core.transport import encode_message, send_safely
from talkback_relay.core.types import (
    DEFAULT_SEND_TIMEOUT,
    WS_MSG_START_CAPTURE,
    WS_MSG_STOP_CAPTURE,
)
from talkback_relay.infrastructure.exceptions import DeviceNotFoundError


class CommandRouter:
    """Validates observer commands and forwards them to producers."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: DeviceDirectory,
        arbiter: ActiveStreamArbiter,
        notifier: MembershipNotifier,
        logger: logging.Logger,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.arbiter = arbiter
        self.notifier = notifier
        self.logger = logger
        self.send_timeout = send_timeout

    async def start_listening(
        self, requester_id: str, device_id: Optional[str]
    ) -> CommandResult:
        """
        Activate device_id and tell it to start capturing.

        A missing device_id is treated as unknown; there is no implicit
        choice of producer.
        """
        if not device_id:
            self.logger.info(f"startListening from {requester_id} without deviceId")
            return CommandResult.not_found()

        try:
            displaced = self.arbiter.activate(device_id)
        except DeviceNotFoundError as e:
            self.logger.info(f"startListening from {requester_id} rejected: {e}")
            return CommandResult.not_found()

        self.logger.info(f"Active producer is now {device_id} (requested by {requester_id})")

        await self._forward(device_id, WS_MSG_START_CAPTURE, requester_id)
        if displaced is not None:
            self.logger.info(f"Producer {displaced} displaced by {device_id}")
            await self._forward(displaced, WS_MSG_STOP_CAPTURE, requester_id)

        await self.notifier.broadcast_snapshot()
        return CommandResult.ok(device_id)

    async def stop_listening(
        self, requester_id: str, device_id: Optional[str]
    ) -> CommandResult:
        """
        Tell device_id to stop capturing and deactivate it if active.

        Without a device_id the currently active producer is targeted.
        """
        target = device_id or self.arbiter.active_id
        if target is None or target not in self.directory:
            self.logger.info(
                f"stopListening from {requester_id} rejected: device not found: {target}"
            )
            return CommandResult.not_found()

        was_active = self.arbiter.deactivate(target)
        if not await self._forward(target, WS_MSG_STOP_CAPTURE, requester_id):
            self.logger.info(f"stopCapture for {target} not delivered, producer unreachable")

        if was_active:
            self.logger.info(f"Producer {target} deactivated by {requester_id}")

        await self.notifier.broadcast_snapshot()
        return CommandResult.ok(target)

    async def _forward(self, device_id: str, command: str, requester_id: str) -> bool:
        """Send a capture command to a producer connection."""
        transport = self.registry.get_transport(device_id)
        if transport is None or not self.registry.is_live(device_id):
            self.logger.debug(f"Producer {device_id} unreachable, {command} not sent")
            return False

        delivered = await send_safely(
            transport,
            encode_message(command, requesterId=requester_id),
            device_id,
            self.logger,
            self.send_timeout,
        )
        if not delivered:
            self.registry.mark_unreachable(device_id)
        return delivered
