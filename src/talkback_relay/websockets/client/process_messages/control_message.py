"""
Client-side control message handler.

This module builds announce messages and dispatches control messages
received from the relay (capture commands, directory updates, command
results, errors) to user callbacks.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, Optional

from websockets.asyncio.client import ClientConnection

from talkback_relay.core.models import DeviceMetadata
from talkback_relay.core.types import (
    ClientRole,
    WS_MSG_ANNOUNCE,
    WS_MSG_ANNOUNCED,
    WS_MSG_DEVICE_LIST_UPDATED,
    WS_MSG_ERROR,
    WS_MSG_LISTENING_STARTED,
    WS_MSG_LISTENING_STOPPED,
    WS_MSG_PONG,
    WS_MSG_START_CAPTURE,
    WS_MSG_STATUS,
    WS_MSG_STOP_CAPTURE,
)
from talkback_relay.infrastructure.exceptions import WebSocketError


def create_announce_message(
    role: ClientRole,
    metadata: Optional[DeviceMetadata] = None,
    token: Optional[str] = None,
) -> str:
    """
    Create an announce message for the relay server.

    Args:
        role: Producer or observer
        metadata: Device description, sent by producers only
        token: Shared relay credential

    Returns:
        JSON string announce message
    """
    message: Dict[str, Any] = {"type": WS_MSG_ANNOUNCE, "role": role.value}

    if role == ClientRole.PRODUCER and metadata is not None:
        message.update(
            {
                "displayName": metadata.display_name,
                "platformVersion": metadata.platform_version,
                "timestamp": metadata.timestamp,
                "sampleRate": metadata.sample_rate,
                "channels": metadata.channels,
            }
        )

    if token:
        message["token"] = token

    return json.dumps(message)


async def _invoke(
    logger: logging.Logger, callback: Optional[Callable[..., Any]], *args: Any
) -> None:
    """Call a sync or async user callback, logging its failures."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Error in {getattr(callback, '__name__', callback)}: {e}", exc_info=True)


class ControlMessageHandler:
    """Handles control messages for relay clients."""

    def __init__(
        self,
        role: ClientRole,
        logger: logging.Logger,
        metadata: Optional[DeviceMetadata] = None,
        token: Optional[str] = None,
        on_start_capture: Optional[Callable[[str], Any]] = None,
        on_stop_capture: Optional[Callable[[str], Any]] = None,
        on_device_list: Optional[Callable[[list], Any]] = None,
        on_command_result: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
        on_status: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> None:
        """
        Initialize the control message handler.

        Args:
            role: Producer or observer
            logger: Logger instance
            metadata: Device description for producers
            token: Shared relay credential
            on_start_capture: Producer callback, receives the requester id
            on_stop_capture: Producer callback, receives the requester id
            on_device_list: Observer callback, receives the device list
            on_command_result: Observer callback, receives the message type
                (listeningStarted/listeningStopped) and its payload
            on_status: Observer callback for status replies
        """
        self.role = role
        self.logger = logger
        self.metadata = metadata
        self.token = token
        self.on_start_capture = on_start_capture
        self.on_stop_capture = on_stop_capture
        self.on_device_list = on_device_list
        self.on_command_result = on_command_result
        self.on_status = on_status

        self.identity: Optional[str] = None
        self.is_announced: bool = False
        self.devices: list = []
        self.announce_future: Optional[asyncio.Future] = None

    @property
    def label(self) -> str:
        return self.identity or self.role.value

    async def announce(self, websocket: ClientConnection, timeout: float = 10.0) -> bool:
        """
        Announce this client to the relay and wait for the acknowledgment.

        Returns:
            True if the relay acknowledged the announce
        """
        self.announce_future = asyncio.get_running_loop().create_future()
        message = create_announce_message(self.role, self.metadata, self.token)
        try:
            await websocket.send(message)
            self.logger.debug(f"[{self.label}] Sent announce as {self.role.value}")
            await asyncio.wait_for(self.announce_future, timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"[{self.label}] No announce acknowledgment after {timeout}s")
            return False
        except WebSocketError as e:
            self.logger.error(f"[{self.label}] Announce rejected: {e}")
            return False

        return self.is_announced

    async def process_control_message(self, message: str) -> None:
        """Process control messages (JSON)."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            self.logger.error(f"[{self.label}] Invalid control message: {e}")
            return
        if not isinstance(data, dict):
            return

        message_type = data.get("type")
        if message_type == WS_MSG_ANNOUNCED:
            self._handle_announced(data)
        elif message_type == WS_MSG_START_CAPTURE:
            self.logger.info(f"[{self.label}] Capture requested by {data.get('requesterId')}")
            await _invoke(self.logger, self.on_start_capture, data.get("requesterId"))
        elif message_type == WS_MSG_STOP_CAPTURE:
            self.logger.info(f"[{self.label}] Capture stop requested by {data.get('requesterId')}")
            await _invoke(self.logger, self.on_stop_capture, data.get("requesterId"))
        elif message_type == WS_MSG_DEVICE_LIST_UPDATED:
            self.devices = data.get("devices", [])
            await _invoke(self.logger, self.on_device_list, self.devices)
        elif message_type in (WS_MSG_LISTENING_STARTED, WS_MSG_LISTENING_STOPPED):
            payload = {k: v for k, v in data.items() if k != "type"}
            await _invoke(self.logger, self.on_command_result, message_type, payload)
        elif message_type == WS_MSG_STATUS:
            await _invoke(self.logger, self.on_status, {k: v for k, v in data.items() if k != "type"})
        elif message_type == WS_MSG_ERROR:
            self._handle_error_response(data)
        elif message_type == WS_MSG_PONG:
            self.logger.debug(f"[{self.label}] Pong received")
        else:
            self.logger.warning(f"[{self.label}] Unknown control message: {message_type}")

    def _handle_announced(self, data: Dict[str, Any]) -> None:
        if data.get("role") != self.role.value:
            self.logger.error(f"[{self.label}] Invalid announce acknowledgment: {data}")
            if self.announce_future and not self.announce_future.done():
                self.announce_future.set_exception(
                    WebSocketError("Invalid announce acknowledgment")
                )
            return

        self.identity = data.get("identity")
        self.is_announced = True
        self.logger.info(f"[{self.label}] Announced as {self.role.value}")
        if self.announce_future and not self.announce_future.done():
            self.announce_future.set_result(True)

    def _handle_error_response(self, data: Dict[str, Any]) -> None:
        """Handle error response from server."""
        error_msg = data.get("message", "Unknown error")
        self.logger.error(f"[{self.label}] Server error: {error_msg}")

        if self.announce_future and not self.announce_future.done():
            self.announce_future.set_exception(WebSocketError(error_msg))
