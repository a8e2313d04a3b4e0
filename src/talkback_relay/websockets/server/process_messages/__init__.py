"""
Message processing modules for the WebSocket relay server.

This package contains handlers for different types of WebSocket messages.
"""

from .control_message import ControlMessageHandler
from .audio_message import AudioMessageHandler
from .utils import ConnectionUtils

__all__ = [
    "ControlMessageHandler",
    "AudioMessageHandler",
    "ConnectionUtils",
]
