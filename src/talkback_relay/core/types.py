"""
Common types and constants for the TalkBack relay.

This module centralizes client roles and wire message types to avoid
hardcoding them throughout the codebase.
"""

from enum import Enum
from typing import Final


class ClientRole(str, Enum):
    """Role a connection takes when it announces itself."""

    PRODUCER = "producer"
    OBSERVER = "observer"


# WebSocket Message Types: client -> core
WS_MSG_ANNOUNCE: Final[str] = "announce"
WS_MSG_REQUEST_DEVICE_LIST: Final[str] = "requestDeviceList"
WS_MSG_START_LISTENING: Final[str] = "startListening"
WS_MSG_STOP_LISTENING: Final[str] = "stopListening"
WS_MSG_REQUEST_STATUS: Final[str] = "requestStatus"
WS_MSG_PING: Final[str] = "ping"

# WebSocket Message Types: core -> client
WS_MSG_ANNOUNCED: Final[str] = "announced"
WS_MSG_START_CAPTURE: Final[str] = "startCapture"
WS_MSG_STOP_CAPTURE: Final[str] = "stopCapture"
WS_MSG_DEVICE_LIST_UPDATED: Final[str] = "deviceListUpdated"
WS_MSG_LISTENING_STARTED: Final[str] = "listeningStarted"
WS_MSG_LISTENING_STOPPED: Final[str] = "listeningStopped"
WS_MSG_STATUS: Final[str] = "status"
WS_MSG_PONG: Final[str] = "pong"
WS_MSG_ERROR: Final[str] = "error"

# Default Values
DEFAULT_SEND_TIMEOUT: Final[float] = 5.0
DEFAULT_SAMPLE_RATE: Final[int] = 44100
DEFAULT_CHANNELS: Final[int] = 1
