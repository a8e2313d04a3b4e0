"""
Infrastructure components for the TalkBack relay.

This package contains infrastructure concerns including:
- Logging configuration with environment-based levels
- Error codes and custom exception definitions
"""

from .logging import setup_logging, get_logger
from .logging_manager import LoggingManager, Environment, get_environment
from .exceptions import (
    ErrorCode,
    RelayError,
    ConfigurationError,
    ValidationError,
    AuthenticationError,
    ProtocolError,
    DeviceNotFoundError,
    NetworkError,
    WebSocketError,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "LoggingManager",
    "Environment",
    "get_environment",
    # Errors
    "ErrorCode",
    "RelayError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "ProtocolError",
    "DeviceNotFoundError",
    "NetworkError",
    "WebSocketError",
]
