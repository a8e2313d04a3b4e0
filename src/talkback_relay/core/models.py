"""
Domain records for the relay.

None of these records hold a transport handle; connection handles live
only in the ConnectionRegistry.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from talkback_relay.core.types import (
    ClientRole,
    DEFAULT_CHANNELS,
    DEFAULT_SAMPLE_RATE,
)
from talkback_relay.infrastructure.exceptions import ErrorCode


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Connection:
    """A live connection known to the registry."""

    identity: str
    role: ClientRole
    live: bool = True
    connected_at: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class DeviceMetadata:
    """What a producer says about itself when it announces."""

    display_name: str
    platform_version: Optional[str] = None
    timestamp: Optional[int] = None
    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS

    @classmethod
    def from_announce(
        cls,
        data: Dict[str, Any],
        fallback_name: str,
        default_sample_rate: int = DEFAULT_SAMPLE_RATE,
        default_channels: int = DEFAULT_CHANNELS,
    ) -> "DeviceMetadata":
        """Build metadata from an announce payload, filling in defaults."""
        name = data.get("displayName") or fallback_name
        version = data.get("platformVersion")
        timestamp = data.get("timestamp")
        return cls(
            display_name=str(name),
            platform_version=str(version) if version is not None else None,
            timestamp=timestamp if isinstance(timestamp, int) else None,
            sample_rate=_positive_int(data.get("sampleRate"), default_sample_rate),
            channels=_positive_int(data.get("channels"), default_channels),
        )


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return default


@dataclass
class ProducerDevice:
    """A registered producer and its streaming flag."""

    id: str
    metadata: DeviceMetadata
    registered_at: int = field(default_factory=now_ms)
    streaming: bool = False

    def to_entry(self) -> "DeviceEntry":
        return DeviceEntry(
            id=self.id,
            name=self.metadata.display_name,
            platform_version=self.metadata.platform_version,
            timestamp=self.metadata.timestamp,
            registered_at=self.registered_at,
            sample_rate=self.metadata.sample_rate,
            channels=self.metadata.channels,
            streaming=self.streaming,
        )


@dataclass(frozen=True)
class DeviceEntry:
    """Read-only view of one producer inside a snapshot."""

    id: str
    name: str
    platform_version: Optional[str]
    timestamp: Optional[int]
    registered_at: int
    sample_rate: int
    channels: int
    streaming: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "platformVersion": self.platform_version,
            "timestamp": self.timestamp,
            "registeredAt": self.registered_at,
            "sampleRate": self.sample_rate,
            "channels": self.channels,
            "streaming": self.streaming,
        }


@dataclass(frozen=True)
class DirectorySnapshot:
    """Serializable projection of the device directory."""

    devices: Tuple[DeviceEntry, ...] = ()

    def to_payload(self) -> List[Dict[str, Any]]:
        return [device.to_dict() for device in self.devices]

    def streaming_ids(self) -> List[str]:
        return [device.id for device in self.devices if device.streaming]

    def __len__(self) -> int:
        return len(self.devices)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a start/stop listening request."""

    success: bool
    device_id: Optional[str] = None
    error: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, device_id: str) -> "CommandResult":
        return cls(success=True, device_id=device_id)

    @classmethod
    def not_found(cls) -> "CommandResult":
        return cls(success=False, error=ErrorCode.NOT_FOUND)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.device_id is not None:
            payload["deviceId"] = self.device_id
        if self.error is not None:
            payload["error"] = self.error.value
        return payload
