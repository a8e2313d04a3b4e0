"""
Client-side audio message handler.

This module hands relayed audio frames to the observer's callback.
"""

import inspect
import logging
from typing import Any, Callable, Optional


class AudioMessageHandler:
    """Handles audio message processing for relay clients."""

    def __init__(
        self,
        logger: logging.Logger,
        audio_callback: Optional[Callable[[bytes], Any]] = None,
        track_audio_callback: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the audio message handler.

        Args:
            logger: Logger instance
            audio_callback: Callback for audio frames, sync or async
            track_audio_callback: Callback to track received audio packets
        """
        self.logger: logging.Logger = logger
        self.audio_callback = audio_callback
        self.track_audio_callback = track_audio_callback

    async def process_audio_message(self, audio_data: bytes) -> None:
        """
        Process binary audio messages.

        Args:
            audio_data: Binary audio data
        """
        if self.track_audio_callback:
            self.track_audio_callback()

        if self.audio_callback is None:
            self.logger.debug("No audio callback set, ignoring audio data")
            return

        try:
            result = self.audio_callback(audio_data)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"Error processing audio data: {e}", exc_info=True)
