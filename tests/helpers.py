"""
Helpers shared by the relay test suite.
"""

import asyncio
import json
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

from talkback_relay.core import RelayCoordinator
from talkback_relay.core.events import ObserverAnnounced, ProducerAnnounced
from talkback_relay.core.models import DeviceMetadata


def make_websocket(identity: str = "ws-1") -> MagicMock:
    """Create a mock WebSocket connection."""
    websocket = MagicMock()
    websocket.id = identity
    websocket.remote_address = ("127.0.0.1", 12345)
    websocket.send = AsyncMock()
    websocket.ping = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


def stall_sends(websocket: MagicMock) -> asyncio.Event:
    """Make every later send on websocket hang until the returned event is set."""
    release = asyncio.Event()

    async def stalled(message):
        await release.wait()

    websocket.send.side_effect = stalled
    return release


def sent_messages(websocket: MagicMock) -> List[Dict[str, Any]]:
    """Decoded JSON control messages sent to a mock websocket, in order."""
    return [
        json.loads(call.args[0])
        for call in websocket.send.await_args_list
        if isinstance(call.args[0], str)
    ]


def sent_of_type(websocket: MagicMock, message_type: str) -> List[Dict[str, Any]]:
    return [m for m in sent_messages(websocket) if m.get("type") == message_type]


def sent_frames(websocket: MagicMock) -> List[bytes]:
    """Binary frames sent to a mock websocket, in order."""
    return [
        call.args[0]
        for call in websocket.send.await_args_list
        if isinstance(call.args[0], bytes)
    ]


def metadata(name: str = "Pixel 7", version: str = "14") -> DeviceMetadata:
    return DeviceMetadata(
        display_name=name, platform_version=version, timestamp=1_700_000_000_000
    )


async def announce_producer(
    coordinator: RelayCoordinator, identity: str, name: str = "Pixel 7"
) -> MagicMock:
    websocket = make_websocket(identity)
    await coordinator.dispatch(ProducerAnnounced(identity, websocket, metadata(name)))
    return websocket


async def announce_observer(coordinator: RelayCoordinator, identity: str) -> MagicMock:
    websocket = make_websocket(identity)
    await coordinator.dispatch(ObserverAnnounced(identity, websocket))
    return websocket
