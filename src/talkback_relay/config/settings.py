"""
Configuration management for the TalkBack relay.

Settings come from environment variables, optionally loaded from a
``.env`` file, and are collected into a single ``RelayConfig``.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from talkback_relay.infrastructure.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class RelayConfig:
    """Configuration for the relay server, status API and clients."""

    # WebSocket relay
    host: str = "0.0.0.0"
    port: int = 8765
    ping_interval: int = 30
    max_connections: int = 100
    max_message_size: int = 2**20
    # Seconds a single send may take before the peer is dropped
    send_timeout: float = 5.0

    # Status API
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Shared announce credential; None disables the check
    auth_token: Optional[str] = None

    # Audio format assumed when a producer does not announce one
    # (mono, 16-bit little-endian PCM)
    default_sample_rate: int = 44100
    default_channels: int = 1

    log_level: str = "INFO"

    def __post_init__(self):
        """Post-initialization validation."""
        if not 0 <= self.port <= 65535:
            raise ValidationError(f"Invalid relay port: {self.port}")
        if not 0 <= self.api_port <= 65535:
            raise ValidationError(f"Invalid API port: {self.api_port}")
        if self.send_timeout <= 0:
            raise ValidationError("send_timeout must be positive")
        if self.max_connections < 1:
            raise ValidationError("max_connections must be at least 1")
        if self.default_sample_rate <= 0 or self.default_channels <= 0:
            raise ValidationError("Default audio format must be positive")
        if self.auth_token == "":
            self.auth_token = None


class RelayConfigManager:
    """Loads RelayConfig from the environment."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to environment file
        """
        self.env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self):
        """Load environment variables from file."""
        if os.path.exists(self.env_file_path):
            load_dotenv(dotenv_path=self.env_file_path)
            logger.info(f"Loaded environment from {self.env_file_path}")
        else:
            logger.debug(f"Environment file {self.env_file_path} not found")

    def _get_optional_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get optional environment variable.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)

    def _get_int_env(self, key: str, default: int) -> int:
        """
        Get an integer environment variable.

        Raises:
            ValidationError: If the value is not an integer
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"{key} must be an integer, got {value!r}")

    def _get_float_env(self, key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ValidationError(f"{key} must be a number, got {value!r}")

    def _get_bool_env(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def get_config(self) -> RelayConfig:
        """
        Get the relay configuration.

        Returns:
            RelayConfig: Relay configuration

        Raises:
            ValidationError: If a value is malformed or out of range
        """
        try:
            config = RelayConfig(
                host=self._get_optional_env("RELAY_HOST", "0.0.0.0"),
                port=self._get_int_env("RELAY_PORT", 8765),
                ping_interval=self._get_int_env("PING_INTERVAL", 30),
                max_connections=self._get_int_env("MAX_CONNECTIONS", 100),
                max_message_size=self._get_int_env("MAX_MESSAGE_SIZE", 2**20),
                send_timeout=self._get_float_env("SEND_TIMEOUT", 5.0),
                api_enabled=self._get_bool_env("API_ENABLED", True),
                api_host=self._get_optional_env("API_HOST", "0.0.0.0"),
                api_port=self._get_int_env("API_PORT", 8000),
                auth_token=self._get_optional_env("RELAY_AUTH_TOKEN"),
                default_sample_rate=self._get_int_env("DEFAULT_SAMPLE_RATE", 44100),
                default_channels=self._get_int_env("DEFAULT_CHANNELS", 1),
                log_level=self._get_optional_env("LOG_LEVEL", "INFO"),
            )

            if config.auth_token is None:
                logger.warning(
                    "RELAY_AUTH_TOKEN is not set; announces are not authenticated"
                )
            logger.info("Configuration loaded successfully")
            return config

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}", exc_info=True)
            raise


# Global configuration manager instance
config_manager = RelayConfigManager()
