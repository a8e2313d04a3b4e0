"""
Unit tests for RelayCoordinator.

These walk the relay through full producer/observer sessions using mock
transports, checking the messages each side receives and the directory
and arbiter state after every step.
"""

import asyncio
import random

import pytest
import pytest_asyncio

from talkback_relay.core import RelayCoordinator
from talkback_relay.core.events import (
    DeviceListRequested,
    Disconnected,
    FrameReceived,
    StartListeningRequested,
    StatusRequested,
    StopListeningRequested,
)
from talkback_relay.core.types import ClientRole
from talkback_relay.infrastructure.exceptions import ProtocolError, RelayError

from tests.helpers import (
    announce_observer,
    announce_producer,
    sent_frames,
    sent_messages,
    sent_of_type,
    stall_sends,
)

FRAME = b"\x00\x01" * 128


def assert_consistent(coordinator: RelayCoordinator) -> None:
    """At most one device streams, and it is the active one."""
    snapshot = coordinator.directory.snapshot()
    active_id = coordinator.arbiter.active_id
    if active_id is None:
        assert snapshot.streaming_ids() == []
    else:
        assert active_id in coordinator.directory
        assert snapshot.streaming_ids() == [active_id]
    for device in coordinator.directory:
        connection = coordinator.registry.get(device.id)
        assert connection is not None
        assert connection.role == ClientRole.PRODUCER


@pytest.mark.unit
class TestRelayCoordinatorLifecycle:
    """Test cases for starting and stopping the coordinator."""

    @pytest.mark.asyncio
    async def test_dispatch_requires_running_coordinator(self):
        """Test events are rejected before start."""
        coordinator = RelayCoordinator()

        with pytest.raises(RelayError):
            await coordinator.dispatch(Disconnected("o1"))

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """Test the running flag follows start and stop."""
        coordinator = RelayCoordinator()
        await coordinator.start()
        assert coordinator.is_running

        await coordinator.stop()
        assert not coordinator.is_running
        assert coordinator.get_stats()["running"] is False

    @pytest.mark.asyncio
    async def test_events_are_counted(self, coordinator):
        """Test processed events show up in statistics."""
        await announce_observer(coordinator, "o1")
        await coordinator.dispatch(Disconnected("o1"))

        stats = coordinator.get_stats()
        assert stats["events_processed"] == 2
        assert stats["pending_events"] == 0
        assert stats["registry_stats"]["total_connections"] == 0


@pytest.mark.unit
class TestRelaySessions:
    """End-to-end sessions through the coordinator."""

    @pytest.mark.asyncio
    async def test_observer_selects_producer(self, coordinator):
        """Test a producer streams only after an observer asks for it."""
        p1 = await announce_producer(coordinator, "p1", name="Pixel 7")
        assert coordinator.arbiter.active_id is None

        o1 = await announce_observer(coordinator, "o1")
        messages = sent_messages(o1)
        assert messages[0] == {"type": "announced", "identity": "o1", "role": "observer"}
        assert messages[1]["type"] == "deviceListUpdated"
        assert [(d["id"], d["name"], d["streaming"]) for d in messages[1]["devices"]] == [
            ("p1", "Pixel 7", False)
        ]

        result = await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        assert result.success
        assert result.device_id == "p1"
        assert sent_of_type(p1, "startCapture") == [{"type": "startCapture", "requesterId": "o1"}]
        assert sent_of_type(o1, "listeningStarted") == [
            {"type": "listeningStarted", "success": True, "deviceId": "p1"}
        ]
        latest = sent_of_type(o1, "deviceListUpdated")[-1]
        assert [(d["id"], d["streaming"]) for d in latest["devices"]] == [("p1", True)]
        assert_consistent(coordinator)

        delivered = await coordinator.dispatch(FrameReceived("p1", FRAME))
        assert delivered == 1
        assert sent_frames(o1) == [FRAME]

    @pytest.mark.asyncio
    async def test_unselected_producer_is_not_relayed(self, coordinator):
        """Test frames from a producer nobody selected reach no observer."""
        await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")

        delivered = await coordinator.dispatch(FrameReceived("p1", FRAME))

        assert delivered == 0
        assert sent_frames(o1) == []
        assert coordinator.get_stats()["relay_stats"]["frames_dropped"] == 1

    @pytest.mark.asyncio
    async def test_active_producer_disconnects(self, coordinator):
        """Test losing the active producer leaves nothing active."""
        await announce_producer(coordinator, "p1")
        p2 = await announce_producer(coordinator, "p2")
        o1 = await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        await coordinator.dispatch(Disconnected("p1"))

        assert "p1" not in coordinator.directory
        assert coordinator.arbiter.active_id is None
        latest = sent_of_type(o1, "deviceListUpdated")[-1]
        assert [(d["id"], d["streaming"]) for d in latest["devices"]] == [("p2", False)]
        # No failover to the remaining producer
        assert sent_of_type(p2, "startCapture") == []
        assert_consistent(coordinator)

    @pytest.mark.asyncio
    async def test_start_listening_unknown_device(self, coordinator):
        """Test an unknown device id yields NotFound and changes nothing."""
        p1 = await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        updates_before = len(sent_of_type(o1, "deviceListUpdated"))

        result = await coordinator.dispatch(StartListeningRequested("o1", "ghost"))

        assert not result.success
        assert sent_of_type(o1, "listeningStarted") == [
            {"type": "listeningStarted", "success": False, "error": "NotFound"}
        ]
        assert len(sent_of_type(o1, "deviceListUpdated")) == updates_before
        assert sent_of_type(p1, "startCapture") == []
        assert coordinator.arbiter.active_id is None

    @pytest.mark.asyncio
    async def test_switch_between_producers(self, coordinator):
        """Test selecting a second producer displaces the first."""
        p1 = await announce_producer(coordinator, "p1")
        p2 = await announce_producer(coordinator, "p2")
        o1 = await announce_observer(coordinator, "o1")
        o2 = await announce_observer(coordinator, "o2")

        await coordinator.dispatch(StartListeningRequested("o1", "p1"))
        await coordinator.dispatch(StartListeningRequested("o2", "p2"))

        assert coordinator.arbiter.active_id == "p2"
        assert coordinator.directory.snapshot().streaming_ids() == ["p2"]
        assert sent_of_type(p1, "stopCapture") == [{"type": "stopCapture", "requesterId": "o2"}]
        assert sent_of_type(p2, "startCapture") == [{"type": "startCapture", "requesterId": "o2"}]
        assert_consistent(coordinator)

        assert await coordinator.dispatch(FrameReceived("p1", FRAME)) == 0
        assert await coordinator.dispatch(FrameReceived("p2", FRAME)) == 2
        assert sent_frames(o1) == [FRAME]
        assert sent_frames(o2) == [FRAME]

    @pytest.mark.asyncio
    async def test_start_listening_without_device_id(self, coordinator):
        """Test no producer is chosen implicitly."""
        await announce_producer(coordinator, "p1")
        await announce_observer(coordinator, "o1")

        result = await coordinator.dispatch(StartListeningRequested("o1", None))

        assert not result.success
        assert coordinator.arbiter.active_id is None


@pytest.mark.unit
class TestStopListening:
    """Test cases for stopListening handling."""

    @pytest.mark.asyncio
    async def test_stop_active_device(self, coordinator):
        """Test stopping the active device deactivates it."""
        p1 = await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        result = await coordinator.dispatch(StopListeningRequested("o1", "p1"))

        assert result.success
        assert coordinator.arbiter.active_id is None
        assert sent_of_type(p1, "stopCapture") == [{"type": "stopCapture", "requesterId": "o1"}]
        assert sent_of_type(o1, "listeningStopped") == [
            {"type": "listeningStopped", "success": True, "deviceId": "p1"}
        ]
        latest = sent_of_type(o1, "deviceListUpdated")[-1]
        assert latest["devices"][0]["streaming"] is False
        assert_consistent(coordinator)

    @pytest.mark.asyncio
    async def test_stop_without_device_id_targets_active(self, coordinator):
        """Test stopListening with no id stops whatever is active."""
        p1 = await announce_producer(coordinator, "p1")
        await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        result = await coordinator.dispatch(StopListeningRequested("o1", None))

        assert result.success
        assert result.device_id == "p1"
        assert coordinator.arbiter.active_id is None
        assert len(sent_of_type(p1, "stopCapture")) == 1

    @pytest.mark.asyncio
    async def test_stop_with_nothing_active(self, coordinator):
        """Test stopListening with no id and nothing active yields NotFound."""
        await announce_observer(coordinator, "o1")

        result = await coordinator.dispatch(StopListeningRequested("o1", None))

        assert not result.success
        assert result.to_dict() == {"success": False, "error": "NotFound"}

    @pytest.mark.asyncio
    async def test_stop_inactive_device_keeps_active(self, coordinator):
        """Test stopping a non-active device leaves the active one alone."""
        await announce_producer(coordinator, "p1")
        p2 = await announce_producer(coordinator, "p2")
        await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        result = await coordinator.dispatch(StopListeningRequested("o1", "p2"))

        assert result.success
        assert coordinator.arbiter.active_id == "p1"
        assert len(sent_of_type(p2, "stopCapture")) == 1
        assert_consistent(coordinator)


@pytest.mark.unit
class TestAnnounceHandling:
    """Test cases for announces, role changes and protocol errors."""

    @pytest.mark.asyncio
    async def test_producer_announce_acknowledged_and_broadcast(self, coordinator):
        """Test a producer announce is acked and broadcast to observers."""
        o1 = await announce_observer(coordinator, "o1")
        p1 = await announce_producer(coordinator, "p1")

        assert sent_messages(p1) == [{"type": "announced", "identity": "p1", "role": "producer"}]
        latest = sent_of_type(o1, "deviceListUpdated")[-1]
        assert [d["id"] for d in latest["devices"]] == ["p1"]

    @pytest.mark.asyncio
    async def test_observer_announce_is_not_broadcast(self, coordinator):
        """Test a new observer gets the snapshot without notifying others."""
        o1 = await announce_observer(coordinator, "o1")
        updates_before = len(sent_of_type(o1, "deviceListUpdated"))

        o2 = await announce_observer(coordinator, "o2")

        assert len(sent_of_type(o1, "deviceListUpdated")) == updates_before
        assert len(sent_of_type(o2, "deviceListUpdated")) == 1

    @pytest.mark.asyncio
    async def test_repeated_announce_keeps_streaming(self, coordinator):
        """Test re-announcing the active producer keeps it active."""
        await announce_producer(coordinator, "p1", name="Old")
        await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))

        await announce_producer(coordinator, "p1", name="New")

        device = coordinator.directory.get("p1")
        assert device.metadata.display_name == "New"
        assert device.streaming is True
        assert coordinator.arbiter.active_id == "p1"
        assert len(coordinator.directory) == 1

    @pytest.mark.asyncio
    async def test_producer_switches_to_observer(self, coordinator):
        """Test a role change removes the device and clears the arbiter."""
        await announce_producer(coordinator, "c1")
        o1 = await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "c1"))

        await announce_observer(coordinator, "c1")

        assert "c1" not in coordinator.directory
        assert coordinator.arbiter.active_id is None
        assert coordinator.registry.get("c1").role == ClientRole.OBSERVER
        assert sent_of_type(o1, "deviceListUpdated")[-1]["devices"] == []
        assert_consistent(coordinator)

    @pytest.mark.asyncio
    async def test_observer_switches_to_producer(self, coordinator):
        """Test an observer can re-announce as a producer."""
        await announce_observer(coordinator, "c1")

        await announce_producer(coordinator, "c1")

        assert coordinator.registry.get("c1").role == ClientRole.PRODUCER
        assert "c1" in coordinator.directory
        assert coordinator.get_snapshot()["observerCount"] == 0

    @pytest.mark.asyncio
    async def test_commands_require_announce(self, coordinator):
        """Test observer commands from an unannounced connection are rejected."""
        with pytest.raises(ProtocolError, match="requires an announce"):
            await coordinator.dispatch(StartListeningRequested("stranger", "p1"))

    @pytest.mark.asyncio
    async def test_commands_rejected_from_producers(self, coordinator):
        """Test producers cannot issue observer commands."""
        await announce_producer(coordinator, "p1")

        with pytest.raises(ProtocolError, match="only accepted from observers"):
            await coordinator.dispatch(StartListeningRequested("p1", "p1"))
        with pytest.raises(ProtocolError):
            await coordinator.dispatch(DeviceListRequested("p1"))

        assert coordinator.arbiter.active_id is None

    @pytest.mark.asyncio
    async def test_coordinator_keeps_running_after_handler_error(self, coordinator):
        """Test a rejected event does not stop the dispatch loop."""
        with pytest.raises(ProtocolError):
            await coordinator.dispatch(StatusRequested("stranger"))

        assert coordinator.is_running
        await announce_observer(coordinator, "o1")
        assert coordinator.registry.is_registered("o1")


@pytest.mark.unit
class TestQueries:
    """Test cases for device list, status and snapshot queries."""

    @pytest.mark.asyncio
    async def test_device_list_request(self, coordinator):
        """Test requestDeviceList replies to the requester only."""
        await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        o2 = await announce_observer(coordinator, "o2")
        o2_before = len(sent_messages(o2))

        assert await coordinator.dispatch(DeviceListRequested("o1")) is True

        assert len(sent_of_type(o1, "deviceListUpdated")) == 2
        assert len(sent_messages(o2)) == o2_before

    @pytest.mark.asyncio
    async def test_status_request(self, coordinator):
        """Test the status reply reflects the active device."""
        await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")

        status = await coordinator.dispatch(StatusRequested("o1"))
        assert status["connected"] is False
        assert status["activeDeviceId"] is None

        await coordinator.dispatch(StartListeningRequested("o1", "p1"))
        await coordinator.dispatch(StatusRequested("o1"))

        reply = sent_of_type(o1, "status")[-1]
        assert reply["connected"] is True
        assert reply["activeDeviceId"] == "p1"
        assert [d["id"] for d in reply["devices"]] == ["p1"]

    @pytest.mark.asyncio
    async def test_get_snapshot(self, coordinator):
        """Test the health snapshot counts."""
        await announce_producer(coordinator, "p1")
        await announce_producer(coordinator, "p2")
        await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p2"))

        assert coordinator.get_snapshot() == {
            "observerCount": 1,
            "deviceCount": 2,
            "activeDeviceId": "p2",
        }

    @pytest.mark.asyncio
    async def test_disconnect_unknown_identity(self, coordinator):
        """Test disconnecting an unknown identity is a no-op."""
        assert await coordinator.dispatch(Disconnected("ghost")) is None

    @pytest.mark.asyncio
    async def test_observer_disconnect_does_not_broadcast(self, coordinator):
        """Test observers leaving does not change the device list."""
        await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        await announce_observer(coordinator, "o2")
        o1_before = len(sent_messages(o1))

        await coordinator.dispatch(Disconnected("o2"))

        assert len(sent_messages(o1)) == o1_before
        assert coordinator.get_snapshot()["observerCount"] == 1


@pytest.mark.unit
@pytest.mark.slow
class TestRandomSessions:
    """Randomized event sequences keep directory and arbiter consistent."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 7, 42])
    async def test_state_stays_consistent(self, coordinator, seed):
        """Test consistency after every event of a random session."""
        rng = random.Random(seed)
        producers = []
        observers = []
        counter = 0

        for _ in range(200):
            action = rng.choice(
                ["producer", "observer", "start", "stop", "frame", "disconnect", "reannounce"]
            )
            counter += 1
            if action == "producer":
                identity = f"p{counter}"
                await announce_producer(coordinator, identity)
                producers.append(identity)
            elif action == "observer":
                identity = f"o{counter}"
                await announce_observer(coordinator, identity)
                observers.append(identity)
            elif action in ("start", "stop") and observers:
                device_id = rng.choice(producers + ["ghost", None])
                event_type = StartListeningRequested if action == "start" else StopListeningRequested
                await coordinator.dispatch(event_type(rng.choice(observers), device_id))
            elif action == "frame" and producers:
                sender = rng.choice(producers)
                delivered = await coordinator.dispatch(FrameReceived(sender, FRAME))
                if sender != coordinator.arbiter.active_id:
                    assert delivered == 0
            elif action == "disconnect" and (producers or observers):
                identity = rng.choice(producers + observers)
                await coordinator.dispatch(Disconnected(identity))
                if identity in producers:
                    producers.remove(identity)
                else:
                    observers.remove(identity)
            elif action == "reannounce" and producers:
                await announce_producer(coordinator, rng.choice(producers), name="Renamed")

            assert_consistent(coordinator)
            assert len(coordinator.directory) == len(producers)


@pytest_asyncio.fixture
async def impatient_coordinator():
    """A running RelayCoordinator that gives up on a send after 50ms."""
    relay_coordinator = RelayCoordinator(send_timeout=0.05)
    await relay_coordinator.start()
    yield relay_coordinator
    await relay_coordinator.stop()


@pytest.mark.unit
class TestStalledTransports:
    """Peers that stop reading must not hold up the dispatch loop."""

    @pytest.mark.asyncio
    async def test_stalled_observer_is_dropped(self, impatient_coordinator):
        """Test a frame fan-out finishes when one observer never accepts data."""
        coordinator = impatient_coordinator
        await announce_producer(coordinator, "p1")
        await announce_producer(coordinator, "p2")
        o1 = await announce_observer(coordinator, "o1")
        o2 = await announce_observer(coordinator, "o2")
        await coordinator.dispatch(StartListeningRequested("o2", "p1"))
        stall_sends(o1)

        delivered = await asyncio.wait_for(
            coordinator.dispatch(FrameReceived("p1", FRAME)), 2.0
        )

        assert delivered == 1
        assert sent_frames(o2) == [FRAME]
        assert not coordinator.registry.is_live("o1")
        o1.close.assert_called_once()

        # Later events are still handled promptly
        await asyncio.wait_for(coordinator.dispatch(Disconnected("p2")), 2.0)
        assert "p2" not in coordinator.directory

        o1.send.reset_mock()
        assert await coordinator.dispatch(FrameReceived("p1", FRAME)) == 1
        o1.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_stalled_producer_is_marked_unreachable(self, impatient_coordinator):
        """Test startListening completes when the producer never accepts the command."""
        coordinator = impatient_coordinator
        p1 = await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        stall_sends(p1)

        result = await asyncio.wait_for(
            coordinator.dispatch(StartListeningRequested("o1", "p1")), 2.0
        )

        assert result.success
        assert coordinator.arbiter.active_id == "p1"
        assert not coordinator.registry.is_live("p1")
        p1.close.assert_called_once()
        assert sent_of_type(o1, "listeningStarted") == [
            {"type": "listeningStarted", "success": True, "deviceId": "p1"}
        ]

    @pytest.mark.asyncio
    async def test_stop_fails_event_in_flight(self):
        """Test stop resolves the event being handled as well as queued ones."""
        coordinator = RelayCoordinator(send_timeout=30.0)
        await coordinator.start()
        await announce_producer(coordinator, "p1")
        o1 = await announce_observer(coordinator, "o1")
        await coordinator.dispatch(StartListeningRequested("o1", "p1"))
        stall_sends(o1)
        sends_before = o1.send.call_count

        in_flight = asyncio.ensure_future(coordinator.dispatch(FrameReceived("p1", FRAME)))
        while o1.send.call_count == sends_before:
            await asyncio.sleep(0)
        queued = asyncio.ensure_future(coordinator.dispatch(Disconnected("o1")))
        await asyncio.sleep(0)

        await coordinator.stop()

        with pytest.raises(RelayError):
            await asyncio.wait_for(in_flight, 1.0)
        with pytest.raises(RelayError):
            await asyncio.wait_for(queued, 1.0)
