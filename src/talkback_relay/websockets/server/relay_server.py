"""
WebSocket relay server for the TalkBack relay.

Accepts producer and observer connections, assigns each a connection
identity and feeds their messages to the RelayCoordinator.
"""

import asyncio
from typing import Any, Dict, Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from talkback_relay.config.settings import RelayConfig
from talkback_relay.core import RelayCoordinator
from talkback_relay.infrastructure import setup_logging
from .process_messages import (
    ControlMessageHandler,
    AudioMessageHandler,
    ConnectionUtils,
)

logger = setup_logging(
    component_name="relay_server",
    log_file="logs/relay_server.log",
)


class AudioRelayServer:
    """WebSocket server that elects one producer and relays it to observers."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        coordinator: Optional[RelayCoordinator] = None,
    ) -> None:
        """Initialize the audio relay server."""
        self.config = config or RelayConfig()
        self.host = self.config.host
        self.port = self.config.port
        self.server: Optional[Server] = None
        self.ping_interval = self.config.ping_interval

        self.coordinator = coordinator or RelayCoordinator(send_timeout=self.config.send_timeout)
        self._connection_semaphore = asyncio.Semaphore(self.config.max_connections)
        self._health_task: Optional[asyncio.Task] = None
        self._open_connections: int = 0

        # Initialize message handlers
        self.control_handler = ControlMessageHandler(self.coordinator, self.config, logger)
        self.audio_handler = AudioMessageHandler(self.coordinator, logger)

    async def start(self) -> bool:
        """Start the audio relay server."""
        try:
            await self.coordinator.start()
            self.server = await serve(
                self._handle_connection,
                self.host,
                self.port,
                ping_interval=None,  # Manual ping handling
                max_size=self.config.max_message_size,
                compression=None,  # No compression for low latency
            )
            logger.info(f"Audio relay server started on {self.host}:{self.bound_port}")
            if self.ping_interval > 0:
                self._health_task = asyncio.create_task(
                    ConnectionUtils.health_monitor(
                        self.coordinator, self.ping_interval, logger
                    )
                )
            return True
        except OSError as e:
            logger.error(f"Failed to start audio relay server: {e}", exc_info=True)
            await self.coordinator.stop()
            return False

    async def stop(self) -> None:
        """Stop the audio relay server."""
        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Audio relay server stopped")

        await self.coordinator.stop()

    @property
    def bound_port(self) -> int:
        """Port actually bound, useful when configured with port 0."""
        if self.server is not None:
            for sock in self.server.sockets:
                return sock.getsockname()[1]
        return self.port

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Handle one client connection from accept to close."""
        identity = str(websocket.id)
        client_address = websocket.remote_address
        logger.info(f"New connection {identity} from {client_address}")

        async with self._connection_semaphore:
            self._open_connections += 1
            try:
                async for message in websocket:
                    if isinstance(message, str):
                        await self.control_handler.process_control_message(
                            websocket, identity, message
                        )
                    elif isinstance(message, bytes):
                        await self.audio_handler.process_audio_message(identity, message)
            except ConnectionClosed:
                logger.info(f"Connection closed: {identity} ({client_address})")
            except Exception as e:
                logger.error(
                    f"Error handling connection from {client_address}: {e}",
                    exc_info=True,
                )
            finally:
                self._open_connections -= 1
                await ConnectionUtils.cleanup_connection(self.coordinator, identity, logger)

    def get_stats(self) -> Dict[str, Any]:
        """Get server statistics."""
        return {
            "server_running": self.server is not None,
            "open_connections": self._open_connections,
            "coordinator_stats": self.coordinator.get_stats(),
        }
