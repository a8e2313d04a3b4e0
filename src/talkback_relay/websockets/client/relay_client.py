"""
WebSocket client for the TalkBack relay.

One client class serves both roles: a producer announces its device,
obeys startCapture/stopCapture and streams frames; an observer lists
devices, starts and stops listening and receives relayed frames.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import websockets.exceptions
from websockets.asyncio.client import connect, ClientConnection

from talkback_relay.core.models import DeviceMetadata
from talkback_relay.core.types import (
    ClientRole,
    WS_MSG_PING,
    WS_MSG_REQUEST_DEVICE_LIST,
    WS_MSG_REQUEST_STATUS,
    WS_MSG_START_LISTENING,
    WS_MSG_STOP_LISTENING,
)
from talkback_relay.infrastructure.exceptions import ProtocolError, WebSocketError

from .process_messages import ControlMessageHandler, AudioMessageHandler


class RelayClient:
    """
    Producer or observer connection to the relay.

    Reconnects automatically with exponential backoff after the server
    closes the connection, and announces again on every reconnect.
    """

    def __init__(
        self,
        role: ClientRole,
        server_url: str,
        logger: logging.Logger,
        metadata: Optional[DeviceMetadata] = None,
        token: Optional[str] = None,
        on_start_capture: Optional[Callable[[str], Any]] = None,
        on_stop_capture: Optional[Callable[[str], Any]] = None,
        on_device_list: Optional[Callable[[list], Any]] = None,
        on_command_result: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
        on_status: Optional[Callable[[Dict[str, Any]], Any]] = None,
        audio_callback: Optional[Callable[[bytes], Any]] = None,
        event_loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Initialize the relay client.

        Args:
            role: Producer or observer
            server_url: WebSocket server URL
            logger: Logger instance
            metadata: Device description, required for producers
            token: Shared relay credential
            on_start_capture: Producer callback for startCapture
            on_stop_capture: Producer callback for stopCapture
            on_device_list: Observer callback for deviceListUpdated
            on_command_result: Observer callback for listeningStarted/listeningStopped
            on_status: Observer callback for status replies
            audio_callback: Observer callback for relayed frames
            event_loop: Event loop for thread-safe sends (defaults to current loop)
        """
        if not isinstance(role, ClientRole):
            raise ValueError(f"role must be a ClientRole, got {role!r}")
        if not server_url:
            raise ValueError("server_url cannot be empty")
        if not server_url.startswith(("ws://", "wss://")):
            raise ValueError("server_url must start with 'ws://' or 'wss://'")
        if role == ClientRole.PRODUCER and metadata is None:
            raise ValueError("producers need device metadata")

        self.role: ClientRole = role
        self.server_url: str = server_url
        self.logger: logging.Logger = logger

        self.websocket: Optional[ClientConnection] = None
        self.is_connected: bool = False

        self.control_handler = ControlMessageHandler(
            role=role,
            logger=logger,
            metadata=metadata,
            token=token,
            on_start_capture=on_start_capture,
            on_stop_capture=on_stop_capture,
            on_device_list=on_device_list,
            on_command_result=on_command_result,
            on_status=on_status,
        )
        self.audio_handler = AudioMessageHandler(
            logger=logger,
            audio_callback=audio_callback,
            track_audio_callback=self._track_received_audio,
        )

        self._connection_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None
        self._should_reconnect: bool = True
        self._reconnect_base_delay: float = 1.0
        self._reconnect_max_delay: float = 60.0

        self.event_loop: Optional[asyncio.AbstractEventLoop] = event_loop

        self._frames_sent: int = 0
        self._frames_received: int = 0
        self._connection_errors: int = 0

    @property
    def label(self) -> str:
        return self.control_handler.label

    @property
    def identity(self) -> Optional[str]:
        """Connection identity assigned by the relay (also the device id of a producer)."""
        return self.control_handler.identity

    @property
    def devices(self) -> list:
        """Latest device list received by an observer."""
        return self.control_handler.devices

    async def connect(self, max_retries: int = 5, retry_delay: float = 1.0) -> bool:
        """
        Connect to the relay and announce, with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Initial delay between retries (exponential backoff)

        Returns:
            True if connected and announced, False otherwise
        """
        if self.event_loop is None:
            self.event_loop = asyncio.get_running_loop()
        self._should_reconnect = True

        for attempt in range(max_retries):
            try:
                self.logger.info(
                    f"[{self.label}] Connecting to {self.server_url} "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                self.websocket = await connect(self.server_url, compression=None)

                # Read messages before announcing so the acknowledgment is seen
                self._connection_task = asyncio.create_task(self._process_messages())

                if await self.control_handler.announce(self.websocket):
                    self.is_connected = True
                    self.logger.info(f"[{self.label}] Client ready")
                    return True

                self.logger.error(f"[{self.label}] Announce failed")
                await self.disconnect()
                return False

            except (OSError, websockets.exceptions.WebSocketException) as e:
                self._connection_errors += 1
                self.logger.error(
                    f"[{self.label}] Error connecting (attempt {attempt + 1}): {e}"
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        return False

    async def _process_messages(self) -> None:
        """Process incoming messages from the server."""
        try:
            async for message in self.websocket:
                if isinstance(message, str):
                    await self.control_handler.process_control_message(message)
                elif isinstance(message, bytes):
                    await self.audio_handler.process_audio_message(message)
        except websockets.exceptions.ConnectionClosed:
            self.logger.warning(f"[{self.label}] Connection closed by server")
        except Exception as e:
            self.logger.error(f"[{self.label}] Error processing messages: {e}", exc_info=True)
        finally:
            self.is_connected = False
            self.control_handler.is_announced = False

            if self._should_reconnect and not self._reconnect_task:
                self._reconnect_task = asyncio.create_task(self._handle_reconnection())

    async def _handle_reconnection(self) -> None:
        """Handle automatic reconnection with exponential backoff."""
        retry_count = 0

        try:
            while self._should_reconnect:
                retry_count += 1
                delay = min(
                    self._reconnect_base_delay * (2 ** (retry_count - 1)),
                    self._reconnect_max_delay,
                )
                self.logger.info(
                    f"[{self.label}] Attempting reconnection #{retry_count} in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

                if await self.connect(max_retries=1):
                    self._reconnect_task = None
                    if self._connection_task is None or self._connection_task.done():
                        # Dropped again before this task finished
                        self.is_connected = False
                        self._reconnect_task = asyncio.create_task(self._handle_reconnection())
                        return
                    self.logger.info(
                        f"[{self.label}] Reconnection successful after {retry_count} attempts"
                    )
                    return
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    async def _send_control(self, message_type: str, **fields: Any) -> None:
        if not self.is_connected or not self.websocket:
            raise WebSocketError(f"[{self.label}] Not connected")
        await self.websocket.send(json.dumps({"type": message_type, **fields}))

    def _require_role(self, role: ClientRole, operation: str) -> None:
        if self.role != role:
            raise ProtocolError(f"{operation} is only available to {role.value}s")

    async def request_device_list(self) -> None:
        self._require_role(ClientRole.OBSERVER, "request_device_list")
        await self._send_control(WS_MSG_REQUEST_DEVICE_LIST)

    async def start_listening(self, device_id: str) -> None:
        """Ask the relay to make device_id the active producer."""
        self._require_role(ClientRole.OBSERVER, "start_listening")
        await self._send_control(WS_MSG_START_LISTENING, deviceId=device_id)

    async def stop_listening(self, device_id: Optional[str] = None) -> None:
        """Ask the relay to stop device_id, or the active producer when omitted."""
        self._require_role(ClientRole.OBSERVER, "stop_listening")
        fields = {"deviceId": device_id} if device_id else {}
        await self._send_control(WS_MSG_STOP_LISTENING, **fields)

    async def request_status(self) -> None:
        self._require_role(ClientRole.OBSERVER, "request_status")
        await self._send_control(WS_MSG_REQUEST_STATUS)

    async def ping(self, timestamp: Optional[int] = None) -> None:
        await self._send_control(WS_MSG_PING, timestamp=timestamp)

    async def send_frame(self, audio_data: bytes) -> bool:
        """
        Send one audio frame to the relay.

        Returns:
            True if the frame was written to the connection
        """
        self._require_role(ClientRole.PRODUCER, "send_frame")
        if not self.is_connected or not self.websocket:
            self.logger.debug(f"[{self.label}] Cannot send audio - not connected")
            return False

        try:
            await self.websocket.send(audio_data)
        except websockets.exceptions.ConnectionClosed:
            self.logger.warning(f"[{self.label}] Connection closed while sending audio")
            self.is_connected = False
            return False

        self._frames_sent += 1
        return True

    def forward_audio(self, audio_data: bytes) -> None:
        """
        Send an audio frame from a capture thread (thread-safe).

        The send is scheduled on the client's event loop and not awaited,
        so the capture thread never blocks on the network.
        """
        if not self.is_connected or self.event_loop is None:
            self.logger.debug(f"[{self.label}] Cannot forward audio - not connected")
            return

        asyncio.run_coroutine_threadsafe(self.send_frame(audio_data), self.event_loop)

    def _track_received_audio(self) -> None:
        """Track received audio frames for performance monitoring."""
        self._frames_received += 1

    async def disconnect(self) -> None:
        """Disconnect from the relay and stop reconnecting."""
        self._should_reconnect = False

        current = asyncio.current_task()
        for attr in ("_reconnect_task", "_connection_task"):
            task = getattr(self, attr)
            if task and task is not current:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            setattr(self, attr, None)

        if self.websocket:
            try:
                await self.websocket.close()
            except Exception as e:
                self.logger.error(f"[{self.label}] Error disconnecting: {e}", exc_info=True)
            finally:
                self.websocket = None
                self.is_connected = False

        self.logger.info(f"[{self.label}] Disconnected from relay")

    def get_status(self) -> Dict[str, Any]:
        """Get client status and performance information."""
        return {
            "identity": self.identity,
            "role": self.role.value,
            "is_connected": self.is_connected,
            "is_announced": self.control_handler.is_announced,
            "server_url": self.server_url,
            "frames_sent": self._frames_sent,
            "frames_received": self._frames_received,
            "connection_errors": self._connection_errors,
        }
