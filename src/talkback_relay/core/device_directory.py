"""
Directory of registered producer devices.

A device record exists exactly while its producer connection is
registered; the coordinator removes both in the same event.
"""

from typing import Dict, Iterator, Optional

from talkback_relay.core.connection_registry import ConnectionRegistry
from talkback_relay.core.models import DeviceMetadata, DirectorySnapshot, ProducerDevice
from talkback_relay.core.types import ClientRole
from talkback_relay.infrastructure.exceptions import ProtocolError


class DeviceDirectory:
    """Producer devices keyed by connection identity."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        self._devices: Dict[str, ProducerDevice] = {}

    def register_device(self, device_id: str, metadata: DeviceMetadata) -> ProducerDevice:
        """
        Insert a device, or refresh its metadata on a repeated announce.

        A repeated announce keeps the streaming flag and registration time.

        Raises:
            ProtocolError: If device_id is not a registered producer connection
        """
        connection = self._registry.get(device_id)
        if connection is None or connection.role != ClientRole.PRODUCER:
            raise ProtocolError(f"{device_id} is not a registered producer connection")

        existing = self._devices.get(device_id)
        if existing is not None:
            existing.metadata = metadata
            return existing

        device = ProducerDevice(id=device_id, metadata=metadata)
        self._devices[device_id] = device
        return device

    def remove_device(self, device_id: str) -> Optional[ProducerDevice]:
        """Delete a device record. The caller must also clear the arbiter."""
        return self._devices.pop(device_id, None)

    def set_streaming(self, device_id: str, streaming: bool) -> None:
        """Set the streaming flag; unknown ids are ignored."""
        device = self._devices.get(device_id)
        if device is not None:
            device.streaming = streaming

    def get(self, device_id: str) -> Optional[ProducerDevice]:
        return self._devices.get(device_id)

    def is_live(self, device_id: str) -> bool:
        """True if the device is present and its connection is live."""
        return device_id in self._devices and self._registry.is_live(device_id)

    def snapshot(self) -> DirectorySnapshot:
        """Read-only copy of every device, without connection handles."""
        return DirectorySnapshot(
            devices=tuple(device.to_entry() for device in self._devices.values())
        )

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[ProducerDevice]:
        return iter(list(self._devices.values()))
