"""
Core components for the TalkBack relay.

This package contains the relay logic: connection registry, device
directory, active-stream arbiter, command routing, audio fan-out and
membership notifications, all owned by the RelayCoordinator.
"""

from .types import ClientRole
from .models import (
    CommandResult,
    Connection,
    DeviceEntry,
    DeviceMetadata,
    DirectorySnapshot,
    ProducerDevice,
)
from .events import (
    DeviceListRequested,
    Disconnected,
    FrameReceived,
    ObserverAnnounced,
    ProducerAnnounced,
    StartListeningRequested,
    StatusRequested,
    StopListeningRequested,
)
from .connection_registry import ConnectionRegistry
from .device_directory import DeviceDirectory
from .stream_arbiter import ActiveStreamArbiter
from .membership_notifier import MembershipNotifier
from .command_router import CommandRouter
from .audio_relay import AudioRelay
from .relay_coordinator import RelayCoordinator

__all__ = [
    "ClientRole",
    "CommandResult",
    "Connection",
    "DeviceEntry",
    "DeviceMetadata",
    "DirectorySnapshot",
    "ProducerDevice",
    "DeviceListRequested",
    "Disconnected",
    "FrameReceived",
    "ObserverAnnounced",
    "ProducerAnnounced",
    "StartListeningRequested",
    "StatusRequested",
    "StopListeningRequested",
    "ConnectionRegistry",
    "DeviceDirectory",
    "ActiveStreamArbiter",
    "MembershipNotifier",
    "CommandRouter",
    "AudioRelay",
    "RelayCoordinator",
]
