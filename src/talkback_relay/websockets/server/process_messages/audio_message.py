"""
Audio message handler for the WebSocket relay server.

Binary messages are audio frames; they are passed to the coordinator,
which relays them only when the sender is the active producer.
"""

import logging

from talkback_relay.core import RelayCoordinator
from talkback_relay.core.events import FrameReceived


class AudioMessageHandler:
    """Hands binary frames to the coordinator's audio relay."""

    def __init__(self, coordinator: RelayCoordinator, logger: logging.Logger) -> None:
        self.coordinator = coordinator
        self.logger = logger

    async def process_audio_message(self, identity: str, audio_data: bytes) -> int:
        """
        Process one binary audio frame.

        Returns:
            Number of observers the frame reached
        """
        try:
            return await self.coordinator.dispatch(FrameReceived(identity, audio_data))
        except Exception as e:
            self.logger.error(f"Error processing audio message: {e}", exc_info=True)
            return 0
