"""
Configuration management for the TalkBack relay.

This package provides:
- The RelayConfig data structure and its validation
- Environment variable and .env file loading
- Default value management
"""

from .settings import RelayConfig, RelayConfigManager, config_manager

__all__ = [
    "RelayConfig",
    "RelayConfigManager",
    "config_manager",
]
