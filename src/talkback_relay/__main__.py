"""
Run the TalkBack relay: the WebSocket relay server and, when enabled, the
status API, sharing one coordinator and one event loop.
"""

import asyncio
import sys

from talkback_relay.api.server import build_api_server
from talkback_relay.config import config_manager
from talkback_relay.config.settings import RelayConfig
from talkback_relay.infrastructure import RelayError, get_environment, setup_logging
from talkback_relay.websockets.server import AudioRelayServer

logger = setup_logging(
    component_name="talkback_relay",
    log_file="logs/talkback_relay.log",
)


async def run(config: RelayConfig) -> None:
    """Serve until interrupted."""
    relay_server = AudioRelayServer(config)
    if not await relay_server.start():
        raise RelayError(f"Could not bind relay server on {config.host}:{config.port}")

    try:
        if config.api_enabled:
            api_server = build_api_server(relay_server.coordinator, config)
            logger.info(f"Status API on http://{config.api_host}:{config.api_port}/health")
            # Returns when uvicorn handles Ctrl+C
            await api_server.serve()
        else:
            await asyncio.Future()
    finally:
        await relay_server.stop()
        logger.info("TalkBack relay stopped")


def main() -> None:
    """Main function to start the relay."""
    try:
        config = config_manager.get_config()
        logger.info(
            f"Starting TalkBack relay on {config.host}:{config.port} "
            f"({get_environment().value})..."
        )
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except RelayError as e:
        logger.critical(f"Failed to start TalkBack relay: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
