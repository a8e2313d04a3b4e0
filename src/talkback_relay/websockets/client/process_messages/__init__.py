"""
Client-side message processing modules.

This package contains handlers for different types of WebSocket messages
received by the client, mirroring the server's process_messages structure.
"""

from .control_message import ControlMessageHandler, create_announce_message
from .audio_message import AudioMessageHandler

__all__ = ["ControlMessageHandler", "AudioMessageHandler", "create_announce_message"]
