"""
Events processed by the RelayCoordinator dispatch loop.

Every inbound connection event is turned into one of these records and
handled one at a time.
"""

from dataclasses import dataclass
from typing import Any, Optional

from talkback_relay.core.models import DeviceMetadata


@dataclass(frozen=True)
class ProducerAnnounced:
    identity: str
    transport: Any
    metadata: DeviceMetadata


@dataclass(frozen=True)
class ObserverAnnounced:
    identity: str
    transport: Any


@dataclass(frozen=True)
class FrameReceived:
    identity: str
    payload: bytes


@dataclass(frozen=True)
class StartListeningRequested:
    identity: str
    device_id: Optional[str]


@dataclass(frozen=True)
class StopListeningRequested:
    identity: str
    device_id: Optional[str]


@dataclass(frozen=True)
class DeviceListRequested:
    identity: str


@dataclass(frozen=True)
class StatusRequested:
    identity: str


@dataclass(frozen=True)
class Disconnected:
    identity: str
