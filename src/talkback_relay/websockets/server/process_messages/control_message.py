"""
Control message handler for the WebSocket relay server.

Parses JSON control messages, checks announce credentials and turns each
message into a coordinator event.
"""

import hmac
import json
import logging
from typing import Any, Dict, Optional

from websockets.asyncio.server import ServerConnection

from talkback_relay.config.settings import RelayConfig
from talkback_relay.core import RelayCoordinator
from talkback_relay.core.events import (
    DeviceListRequested,
    ObserverAnnounced,
    ProducerAnnounced,
    StartListeningRequested,
    StatusRequested,
    StopListeningRequested,
)
from talkback_relay.core.models import DeviceMetadata
from talkback_relay.core.transport import encode_message
from talkback_relay.core.types import (
    ClientRole,
    WS_MSG_ANNOUNCE,
    WS_MSG_ERROR,
    WS_MSG_PING,
    WS_MSG_PONG,
    WS_MSG_REQUEST_DEVICE_LIST,
    WS_MSG_REQUEST_STATUS,
    WS_MSG_START_LISTENING,
    WS_MSG_STOP_LISTENING,
)
from talkback_relay.infrastructure.exceptions import (
    AuthenticationError,
    ProtocolError,
)


class ControlMessageHandler:
    """Handles control messages (announce, commands, ping)."""

    def __init__(
        self,
        coordinator: RelayCoordinator,
        config: RelayConfig,
        logger: logging.Logger,
    ) -> None:
        self.coordinator = coordinator
        self.config = config
        self.logger = logger

    async def process_control_message(
        self, websocket: ServerConnection, identity: str, message: str
    ) -> None:
        """Process one JSON control message from connection identity."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            self.logger.error(f"Failed to parse message from {identity}: {e}")
            await self._send_error(websocket, "Invalid JSON")
            return

        if not isinstance(data, dict):
            await self._send_error(websocket, "Control messages must be JSON objects")
            return

        message_type = data.get("type")
        try:
            if message_type == WS_MSG_ANNOUNCE:
                await self._handle_announce(websocket, identity, data)
            elif message_type == WS_MSG_REQUEST_DEVICE_LIST:
                await self.coordinator.dispatch(DeviceListRequested(identity))
            elif message_type == WS_MSG_START_LISTENING:
                await self.coordinator.dispatch(
                    StartListeningRequested(identity, self._device_id(data))
                )
            elif message_type == WS_MSG_STOP_LISTENING:
                await self.coordinator.dispatch(
                    StopListeningRequested(identity, self._device_id(data))
                )
            elif message_type == WS_MSG_REQUEST_STATUS:
                await self.coordinator.dispatch(StatusRequested(identity))
            elif message_type == WS_MSG_PING:
                await self._handle_ping(websocket, data)
            else:
                self.logger.warning(f"Unknown message type from {identity}: {message_type}")
                await self._send_error(websocket, f"Unknown message type: {message_type}")

        except (AuthenticationError, ProtocolError) as e:
            self.logger.warning(f"Rejected {message_type} from {identity}: {e}")
            await self._send_error(websocket, str(e))
        except Exception as e:
            self.logger.error(f"Error processing control message: {e}", exc_info=True)
            await self._send_error(websocket, "Internal server error")

    async def _handle_announce(
        self, websocket: ServerConnection, identity: str, data: Dict[str, Any]
    ) -> None:
        """Handle producer and observer announces."""
        self._check_credentials(data)

        try:
            role = ClientRole(data.get("role"))
        except ValueError:
            raise ProtocolError(f"Invalid role: {data.get('role')}")

        if role == ClientRole.PRODUCER:
            metadata = DeviceMetadata.from_announce(
                data,
                fallback_name=f"Producer {len(self.coordinator.directory) + 1}",
                default_sample_rate=self.config.default_sample_rate,
                default_channels=self.config.default_channels,
            )
            await self.coordinator.dispatch(ProducerAnnounced(identity, websocket, metadata))
        else:
            await self.coordinator.dispatch(ObserverAnnounced(identity, websocket))

    def _check_credentials(self, data: Dict[str, Any]) -> None:
        """Compare the announce token with the configured shared token."""
        expected = self.config.auth_token
        if expected is None:
            return

        supplied = data.get("token")
        if not isinstance(supplied, str) or not hmac.compare_digest(
            supplied.encode(), expected.encode()
        ):
            raise AuthenticationError("Invalid or missing token")

    @staticmethod
    def _device_id(data: Dict[str, Any]) -> Optional[str]:
        device_id = data.get("deviceId")
        return str(device_id) if device_id else None

    async def _handle_ping(
        self, websocket: ServerConnection, data: Dict[str, Any]
    ) -> None:
        """Handle ping messages."""
        await websocket.send(encode_message(WS_MSG_PONG, timestamp=data.get("timestamp")))

    async def _send_error(self, websocket: ServerConnection, message: str) -> None:
        """Send error message to client."""
        try:
            await websocket.send(encode_message(WS_MSG_ERROR, message=message))
        except Exception as e:
            self.logger.error(f"Failed to send error message: {e}")
