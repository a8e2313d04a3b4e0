"""
TalkBack Relay - live audio relay between capture devices and listeners.

Producers (capture devices) announce themselves and stream raw audio
frames; observers list the producers, pick one to listen to and receive
its frames. Exactly one producer is relayed at a time, and only after an
observer explicitly asks for it.

Architecture:
- Core: Registry, Directory, Arbiter, Command Router, Audio Relay and
  Notifier, owned by a single-writer RelayCoordinator
- WebSockets: relay server and producer/observer client
- API: health and status endpoints
- Config: environment based configuration
- Infrastructure: logging and exceptions
"""

__version__ = "1.0.0"

# Core components
from .core import (
    ActiveStreamArbiter,
    AudioRelay,
    ClientRole,
    CommandRouter,
    ConnectionRegistry,
    DeviceDirectory,
    MembershipNotifier,
    RelayCoordinator,
)

# Networking components
from .websockets.server import AudioRelayServer
from .websockets.client import RelayClient

# Configuration
from .config import RelayConfig, RelayConfigManager, config_manager

# Infrastructure
from .infrastructure.logging import setup_logging, get_logger
from .infrastructure.exceptions import (
    ErrorCode,
    RelayError,
    ConfigurationError,
    AuthenticationError,
    ProtocolError,
    DeviceNotFoundError,
)

__all__ = [
    # Version info
    "__version__",
    # Core components
    "ActiveStreamArbiter",
    "AudioRelay",
    "ClientRole",
    "CommandRouter",
    "ConnectionRegistry",
    "DeviceDirectory",
    "MembershipNotifier",
    "RelayCoordinator",
    # Networking components
    "AudioRelayServer",
    "RelayClient",
    # Configuration
    "RelayConfig",
    "RelayConfigManager",
    "config_manager",
    # Infrastructure
    "setup_logging",
    "get_logger",
    "ErrorCode",
    "RelayError",
    "ConfigurationError",
    "AuthenticationError",
    "ProtocolError",
    "DeviceNotFoundError",
]
