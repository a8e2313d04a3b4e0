"""
REST API module for the TalkBack relay.

This module provides health and status endpoints for operations.
"""

from .app import create_app
from .server import build_api_server

__all__ = ["create_app", "build_api_server"]
