"""
Fan-out of audio frames from the active producer.

Frames are opaque: mono 16-bit little-endian PCM by convention, with the
sample rate fixed at announce time. The relay never reads or alters them.
"""

import logging
from typing import Dict

from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.stream_arbiter import ActiveStreamArbiter
from talkback_relay.core.transport import fan_out
from talkback_relay.core.types import ClientRole, DEFAULT_SEND_TIMEOUT


class AudioRelay:
    """Forwards frames from the active producer to all observers."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        arbiter: ActiveStreamArbiter,
        logger: logging.Logger,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.arbiter = arbiter
        self.logger = logger
        self.send_timeout = send_timeout

        self._frames_relayed: int = 0
        self._frames_dropped: int = 0
        self._bytes_relayed: int = 0

    async def relay_frame(self, sender_id: str, frame: bytes) -> int:
        """
        Relay one frame if sender_id is the active producer.

        Returns:
            Number of observers the frame was delivered to
        """
        if not self.arbiter.is_active(sender_id):
            self._frames_dropped += 1
            self.logger.debug(f"Dropped frame from inactive sender {sender_id}")
            return 0

        targets = self.registry.live_transports(ClientRole.OBSERVER)
        if not targets:
            self.logger.debug(f"No observers for active producer {sender_id}")
            return 0

        results = await fan_out(targets, frame, self.logger, self.send_timeout)
        delivered = 0
        for identity, ok in results.items():
            if ok:
                delivered += 1
            else:
                self.registry.mark_unreachable(identity)

        self._frames_relayed += 1
        self._bytes_relayed += len(frame) * delivered
        return delivered

    def get_stats(self) -> Dict[str, int]:
        return {
            "frames_relayed": self._frames_relayed,
            "frames_dropped": self._frames_dropped,
            "bytes_relayed": self._bytes_relayed,
        }
