"""
Custom exceptions for the TalkBack relay.

This module defines all custom exceptions used throughout the system,
providing clear error categorization and handling.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes reported back to clients in command results."""

    NOT_FOUND = "NotFound"
    TRANSPORT_UNREACHABLE = "TransportUnreachable"


class RelayError(Exception):
    """Base exception for all relay related errors."""

    pass


class ConfigurationError(RelayError):
    """Raised when there are configuration-related errors."""

    pass


class ValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    pass


class AuthenticationError(RelayError):
    """Raised when an announce carries missing or wrong credentials."""

    pass


class ProtocolError(RelayError):
    """Raised when a client sends a message it is not allowed to send."""

    pass


class DeviceNotFoundError(RelayError):
    """Raised when a command names a producer that is not in the directory."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, device_id):
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class NetworkError(RelayError):
    """Raised when there are network communication errors."""

    pass


class WebSocketError(NetworkError):
    """Raised when there are WebSocket communication errors."""

    pass
