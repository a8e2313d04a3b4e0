"""
Election of the single active producer.

The arbiter's ``active_id`` and the directory's streaming flags always
agree: at most one device is streaming, and it is the active one.
"""

from typing import Optional

from talkback_relay.core.device_directory import DeviceDirectory
from talkback_relay.infrastructure.exceptions import DeviceNotFoundError


class ActiveStreamArbiter:
    """Holds at most one active producer reference."""

    def __init__(self, directory: DeviceDirectory) -> None:
        self._directory = directory
        self.active_id: Optional[str] = None

    def activate(self, device_id: str) -> Optional[str]:
        """
        Make device_id the active producer.

        Returns:
            The previously active device id if a different device was displaced

        Raises:
            DeviceNotFoundError: If the device is unknown or its connection is not live
        """
        if not self._directory.is_live(device_id):
            raise DeviceNotFoundError(device_id)

        displaced = None
        if self.active_id is not None and self.active_id != device_id:
            displaced = self.active_id
            self._directory.set_streaming(displaced, False)

        self.active_id = device_id
        self._directory.set_streaming(device_id, True)
        return displaced

    def deactivate(self, device_id: str) -> bool:
        """
        Clear the active producer if it is device_id.

        There is no failover: nothing else becomes active.

        Returns:
            True if device_id was active
        """
        if self.active_id != device_id:
            return False

        self.active_id = None
        self._directory.set_streaming(device_id, False)
        return True

    def is_active(self, identity: str) -> bool:
        return self.active_id is not None and self.active_id == identity
