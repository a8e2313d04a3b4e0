"""
Relay coordinator.

Owns the registry, directory, arbiter, router, relay and notifier, and
processes connection events one at a time from a single inbox. State is
only mutated from the dispatch loop, and each handler finishes its
mutations before its first send, so readers between events never see a
half-updated directory/arbiter pair.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from talkback_relay.core.audio_relay import AudioRelay
from talkback_relay.core.command_router import CommandRouter
from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.device_directory import DeviceDirectory
from talkback_relay.core.events import (
    DeviceListRequested,
    Disconnected,
    FrameReceived,
    ObserverAnnounced,
    ProducerAnnounced,
    StartListeningRequested,
    StatusRequested,
    StopListeningRequested,
)
from talkback_relay.core.membership_notifier import MembershipNotifier
from talkback_relay.core.models import CommandResult, Connection, ProducerDevice
from talkback_relay.core.stream_arbiter import ActiveStreamArbiter
from talkback_relay.core.transport import encode_message, send_safely
from talkback_relay.core.types import (
    ClientRole,
    DEFAULT_SEND_TIMEOUT,
    WS_MSG_ANNOUNCED,
    WS_MSG_LISTENING_STARTED,
    WS_MSG_LISTENING_STOPPED,
    WS_MSG_STATUS,
)
from talkback_relay.infrastructure import setup_logging
from talkback_relay.infrastructure.exceptions import ProtocolError, RelayError

logger = setup_logging(component_name="relay_coordinator")


class RelayCoordinator:
    """Single-writer owner of all relay state."""

    def __init__(
        self,
        logger: logging.Logger = logger,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        """
        Args:
            logger: Logger shared by all components
            send_timeout: Seconds any single send may take before the peer
                is treated as unreachable
        """
        self.logger = logger
        self.send_timeout = send_timeout

        self.registry = ConnectionRegistry()
        self.directory = DeviceDirectory(self.registry)
        self.arbiter = ActiveStreamArbiter(self.directory)
        self.notifier = MembershipNotifier(
            self.registry, self.directory, logger, send_timeout
        )
        self.router = CommandRouter(
            self.registry, self.directory, self.arbiter, self.notifier, logger, send_timeout
        )
        self.relay = AudioRelay(self.registry, self.arbiter, logger, send_timeout)

        self._inbox: Optional[asyncio.Queue[Tuple[Any, asyncio.Future]]] = None
        self._task: Optional[asyncio.Task] = None
        self._events_processed: int = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the dispatch loop."""
        if self.is_running:
            return
        self._inbox = asyncio.Queue()
        self._task = asyncio.create_task(self._run())
        self.logger.info("Relay coordinator started")

    async def stop(self) -> None:
        """Stop the dispatch loop and fail any events still queued."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        while self._inbox is not None and not self._inbox.empty():
            _, future = self._inbox.get_nowait()
            if not future.done():
                future.set_exception(RelayError("Relay coordinator stopped"))
        self._inbox = None
        self.logger.info("Relay coordinator stopped")

    async def dispatch(self, event: Any) -> Any:
        """
        Queue an event and wait for it to be handled.

        Returns:
            The handler's result

        Raises:
            RelayError: If the coordinator is not running, or whatever the
                handler raised
        """
        if not self.is_running or self._inbox is None:
            raise RelayError("Relay coordinator is not running")

        future = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait((event, future))
        return await future

    async def _run(self) -> None:
        while True:
            event, future = await self._inbox.get()
            # A cancelled caller does not cancel the event itself;
            # disconnects in particular must still be applied.
            try:
                result = await self._process(event)
            except asyncio.CancelledError:
                if not future.done():
                    future.set_exception(RelayError("Relay coordinator stopped"))
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
                elif not isinstance(e, RelayError):
                    self.logger.error(
                        f"Error handling {type(event).__name__}: {e}", exc_info=True
                    )
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._events_processed += 1

    async def _process(self, event: Any) -> Any:
        if isinstance(event, FrameReceived):
            return await self.relay.relay_frame(event.identity, event.payload)
        elif isinstance(event, ProducerAnnounced):
            return await self._on_producer_announced(event)
        elif isinstance(event, ObserverAnnounced):
            return await self._on_observer_announced(event)
        elif isinstance(event, StartListeningRequested):
            return await self._on_start_listening(event)
        elif isinstance(event, StopListeningRequested):
            return await self._on_stop_listening(event)
        elif isinstance(event, DeviceListRequested):
            self._require_role(event.identity, ClientRole.OBSERVER, "requestDeviceList")
            return await self.notifier.send_snapshot(event.identity)
        elif isinstance(event, StatusRequested):
            return await self._on_status_requested(event)
        elif isinstance(event, Disconnected):
            return await self._on_disconnected(event)
        else:
            raise ProtocolError(f"Unsupported event: {type(event).__name__}")

    async def _on_producer_announced(self, event: ProducerAnnounced) -> ProducerDevice:
        removed = self._admit(event.identity, ClientRole.PRODUCER, event.transport)
        device = self.directory.register_device(event.identity, event.metadata)
        self.logger.info(
            f"Producer announced: {event.identity} ({device.metadata.display_name}, "
            f"{device.metadata.sample_rate} Hz)"
        )
        if removed is not None:
            self.logger.info(f"Connection {event.identity} switched role to producer")

        await self._acknowledge(event.identity, ClientRole.PRODUCER)
        await self.notifier.broadcast_snapshot()
        return device

    async def _on_observer_announced(self, event: ObserverAnnounced) -> Connection:
        removed = self._admit(event.identity, ClientRole.OBSERVER, event.transport)
        connection = self.registry.get(event.identity)
        self.logger.info(f"Observer announced: {event.identity}")

        await self._acknowledge(event.identity, ClientRole.OBSERVER)
        await self.notifier.send_snapshot(event.identity)
        if removed is not None:
            # The connection was a producer until now
            await self.notifier.broadcast_snapshot()
        return connection

    async def _on_start_listening(self, event: StartListeningRequested) -> CommandResult:
        self._require_role(event.identity, ClientRole.OBSERVER, "startListening")
        result = await self.router.start_listening(event.identity, event.device_id)
        await self._reply(event.identity, WS_MSG_LISTENING_STARTED, result)
        return result

    async def _on_stop_listening(self, event: StopListeningRequested) -> CommandResult:
        self._require_role(event.identity, ClientRole.OBSERVER, "stopListening")
        result = await self.router.stop_listening(event.identity, event.device_id)
        await self._reply(event.identity, WS_MSG_LISTENING_STOPPED, result)
        return result

    async def _on_status_requested(self, event: StatusRequested) -> Dict[str, Any]:
        self._require_role(event.identity, ClientRole.OBSERVER, "requestStatus")
        active_id = self.arbiter.active_id
        connected = active_id is not None and self.directory.is_live(active_id)
        status = {
            "connected": connected,
            "activeDeviceId": active_id if connected else None,
            "devices": self.directory.snapshot().to_payload(),
        }
        await self._send(event.identity, encode_message(WS_MSG_STATUS, **status))
        return status

    async def _on_disconnected(self, event: Disconnected) -> Optional[Connection]:
        connection = self.registry.get(event.identity)
        removed = self._remove_connection(event.identity)

        if connection is None:
            return None

        self.logger.info(f"{connection.role.value.capitalize()} disconnected: {event.identity}")
        if removed is not None:
            await self.notifier.broadcast_snapshot()
        return connection

    def _admit(self, identity: str, role: ClientRole, transport: Any) -> Optional[ProducerDevice]:
        """
        Register identity with role, cleaning up a previous role first.

        Returns:
            The producer record removed by a role change, if any
        """
        existing = self.registry.get(identity)
        removed = None
        if existing is not None and existing.role != role:
            removed = self._remove_connection(identity)
            existing = None
        if existing is None:
            self.registry.register(identity, role, transport)
        return removed

    def _remove_connection(self, identity: str) -> Optional[ProducerDevice]:
        """Drop a connection and its device, clearing the arbiter in the same step."""
        self.registry.unregister(identity)
        device = self.directory.remove_device(identity)
        if device is not None:
            self.arbiter.deactivate(identity)
        return device

    def _require_role(self, identity: str, role: ClientRole, message_type: str) -> None:
        connection = self.registry.get(identity)
        if connection is None:
            raise ProtocolError(f"{message_type} requires an announce first")
        if connection.role != role:
            raise ProtocolError(f"{message_type} is only accepted from {role.value}s")

    async def _acknowledge(self, identity: str, role: ClientRole) -> None:
        await self._send(
            identity, encode_message(WS_MSG_ANNOUNCED, identity=identity, role=role.value)
        )

    async def _reply(self, identity: str, message_type: str, result: CommandResult) -> None:
        await self._send(identity, encode_message(message_type, **result.to_dict()))

    async def _send(self, identity: str, message: str) -> bool:
        transport = self.registry.get_transport(identity)
        if transport is None:
            return False
        delivered = await send_safely(
            transport, message, identity, self.logger, self.send_timeout
        )
        if not delivered:
            self.registry.mark_unreachable(identity)
        return delivered

    def get_snapshot(self) -> Dict[str, Any]:
        """Operational summary for health checks."""
        return {
            "observerCount": len(self.registry.list_by_role(ClientRole.OBSERVER)),
            "deviceCount": len(self.directory),
            "activeDeviceId": self.arbiter.active_id,
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        return {
            "running": self.is_running,
            "events_processed": self._events_processed,
            "pending_events": self._inbox.qsize() if self._inbox is not None else 0,
            "registry_stats": self.registry.get_stats(),
            "relay_stats": self.relay.get_stats(),
            **self.get_snapshot(),
        }
