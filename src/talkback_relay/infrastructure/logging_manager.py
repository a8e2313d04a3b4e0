"""
Environment-aware logging management for the TalkBack relay.

Logging is configured from ``talkback_relay/logging.yaml`` when it is
present, with log levels chosen by the ``ENVIRONMENT`` variable:

- Development: DEBUG and above
- Staging: INFO and above
- Production: WARNING and above
"""

import logging
import logging.config
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

NOISY_LOGGERS = (
    "websockets",
    "websockets.server",
    "websockets.client",
    "uvicorn.access",
    "asyncio",
)


class Environment(Enum):
    """Environment enumeration."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LoggingManager:
    """Centralized logging management with production controls."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize logging manager.

        Args:
            config_path: Path to YAML configuration file. If None, uses the
                logging.yaml shipped with the package.
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / "logging.yaml"

        self.config_path = config_path
        self._config_cache: Optional[Dict[str, Any]] = None
        self._configured = False
        self._environment = self._detect_environment()
        self._production_mode = self._environment == Environment.PRODUCTION

    def _detect_environment(self) -> Environment:
        """Detect current environment from environment variables."""
        env = os.getenv("ENVIRONMENT", "development").lower()

        if env in ["prod", "production"]:
            return Environment.PRODUCTION
        elif env in ["staging", "stage"]:
            return Environment.STAGING
        else:
            return Environment.DEVELOPMENT

    def _load_yaml_config(self) -> Optional[Dict[str, Any]]:
        """Load YAML logging configuration."""
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            return None

        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            logging.getLogger(__name__).warning(
                f"Failed to load YAML logging config {self.config_path}: {e}"
            )
            return None

        self._config_cache = config
        return config

    def _get_environment_log_level(self) -> str:
        """Get appropriate log level for current environment."""
        if self._production_mode:
            return "WARNING"
        elif self._environment == Environment.STAGING:
            return "INFO"
        else:
            return "DEBUG"

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment-specific levels to a copy of the configuration."""
        env_log_level = self._get_environment_log_level()
        config = {**config}

        if "root" in config:
            config["root"] = {**config["root"], "level": env_log_level}

        if "loggers" in config:
            loggers = {}
            for logger_name, logger_config in config["loggers"].items():
                if logger_name in NOISY_LOGGERS:
                    loggers[logger_name] = logger_config
                else:
                    loggers[logger_name] = {**logger_config, "level": env_log_level}
            config["loggers"] = loggers

        return config

    def _ensure_log_dirs(self, config: Dict[str, Any]) -> None:
        """Create parent directories for file handlers."""
        for handler_config in config.get("handlers", {}).values():
            filename = handler_config.get("filename")
            if filename:
                os.makedirs(os.path.dirname(filename) or ".", exist_ok=True)

    def setup_logging(
        self,
        component_name: str,
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Set up logging for a component with environment-aware configuration.

        Args:
            component_name: Name of the component
            log_level: Override log level (if None, uses environment-appropriate level:
                      Development=DEBUG, Staging=INFO, Production=WARNING)
            log_file: Extra log file for this component

        Returns:
            Configured logger instance
        """
        if log_level is None:
            log_level = self._get_environment_log_level()

        config = self._load_yaml_config()

        if config:
            if not self._configured:
                config = self._apply_environment_overrides(config)
                self._ensure_log_dirs(config)
                logging.config.dictConfig(config)
                self._suppress_noisy_loggers()
                self._configured = True

            logger = logging.getLogger(component_name)
            logger.setLevel(getattr(logging, log_level.upper()))
            if log_file:
                self._attach_file_handler(logger, log_file, self._production_mode)
            return logger
        else:
            return self._setup_basic_logging(
                component_name, log_level, log_file, self._production_mode
            )

    def _setup_basic_logging(
        self,
        component_name: str,
        log_level: str,
        log_file: Optional[str],
        production_mode: bool,
    ) -> logging.Logger:
        """Set up basic logging when YAML config is not available."""
        logger = logging.getLogger(component_name)
        logger.setLevel(getattr(logging, log_level.upper()))
        logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logger.level)
        console_handler.setFormatter(self._formatter(production_mode))
        logger.addHandler(console_handler)

        if log_file:
            self._attach_file_handler(logger, log_file, production_mode)

        self._suppress_noisy_loggers()

        return logger

    def _formatter(self, production_mode: bool) -> logging.Formatter:
        if production_mode:
            return logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        return logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def _attach_file_handler(
        self, logger: logging.Logger, log_file: str, production_mode: bool
    ) -> None:
        """Add a file handler for log_file unless the logger already has one."""
        target = os.path.abspath(log_file)
        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
                return

        os.makedirs(os.path.dirname(target), exist_ok=True)
        file_handler = logging.FileHandler(target)
        file_handler.setLevel(logging.WARNING if production_mode else logging.DEBUG)
        file_handler.setFormatter(self._formatter(production_mode))
        logger.addHandler(file_handler)

    def _suppress_noisy_loggers(self):
        """Suppress noisy third-party library loggers."""
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    def get_environment(self) -> Environment:
        """Get current environment."""
        return self._environment

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self._production_mode


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a component (convenience function).

    Args:
        component_name: Name of the component
        log_level: Override log level
        log_file: Extra log file for this component

    Returns:
        Configured logger instance
    """
    return _logging_manager.setup_logging(component_name, log_level, log_file)


def get_environment() -> Environment:
    """Get current environment."""
    return _logging_manager.get_environment()
