"""
API server runner for relay status.
"""

import uvicorn

from ..config.settings import RelayConfig
from ..core import RelayCoordinator
from .app import create_app


def build_api_server(coordinator: RelayCoordinator, config: RelayConfig) -> uvicorn.Server:
    """
    Build a uvicorn server for the status API.

    Args:
        coordinator: Coordinator whose state is reported
        config: Relay configuration (API host and port)

    Returns:
        A uvicorn server ready to ``serve()`` on the current event loop
    """
    app = create_app(coordinator)
    uvicorn_config = uvicorn.Config(
        app=app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )
    return uvicorn.Server(uvicorn_config)
