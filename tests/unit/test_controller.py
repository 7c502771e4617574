from __future__ import annotations

import asyncio

import pytest

from spinctl.controller import SessionController
from spinctl.core import (
    ACTION_CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    COMMAND_CHARACTERISTIC_UUID,
)
from spinctl.events import (
    ActionReceived,
    CharacteristicChanged,
    CharacteristicWritten,
    ConnectFailed,
    Connected,
    DescriptorWritten,
    DeviceDiscovered,
    DeviceFound,
    DeviceHandle,
    Disconnected,
    ServicesDiscovered,
    SessionFailed,
)
from spinctl.errors import DiscoveryError
from spinctl.handshake import HandshakeState

from fakes import FakeDiscovery

CMD = COMMAND_CHARACTERISTIC_UUID.lower()
ACTION = ACTION_CHARACTERISTIC_UUID.lower()
CCCD = CLIENT_CHARACTERISTIC_CONFIG_UUID.lower()


@pytest.fixture
def controller(transport, discovery, sink) -> SessionController:
    return SessionController(transport, discovery, sink)


def handshake(session_id: int, services) -> list:
    return [
        Connected(session_id),
        ServicesDiscovered(session_id, services),
        CharacteristicWritten(session_id, CMD, bytes.fromhex("09ff0000")),
        DescriptorWritten(session_id, CCCD),
        CharacteristicWritten(session_id, CMD, bytes.fromhex("0801")),
    ]


def activate(controller, device, services) -> None:
    controller.on_device_discovered(device)
    for event in handshake(controller.session.id, services):
        controller.dispatch(event)


def test_registers_callbacks(controller, transport, discovery) -> None:
    assert transport.on_event == controller.post
    assert discovery.on_device == controller.post


def test_initial_state(controller) -> None:
    assert controller.session is None
    assert controller.state is HandshakeState.IDLE
    assert not controller.is_active


def test_discovery_creates_session(controller, transport, discovery, sink, device) -> None:
    controller.start()
    controller.on_device_discovered(device)

    assert not discovery.scanning
    assert sink.events == [DeviceFound(address=device.address, rssi=-58)]
    assert controller.state is HandshakeState.CONNECTING
    assert controller.session.device == device
    assert transport.calls == [("connect", controller.session.id, device.address)]


def test_second_discovery_is_ignored(controller, transport, device) -> None:
    controller.on_device_discovered(device)
    first = controller.session

    other = DeviceHandle(address="C4:7F:51:00:99:99", rssi=-70)
    controller.on_device_discovered(other)

    assert controller.session is first
    assert transport.requests == ["connect"]


def test_full_handshake_activates(controller, sink, device, services) -> None:
    activate(controller, device, services)

    assert controller.is_active
    assert controller.state is HandshakeState.ACTIVE


def test_failure_tears_down_and_rescans(controller, transport, discovery, sink, device) -> None:
    controller.start()
    controller.on_device_discovered(device)
    session = controller.session

    controller.dispatch(ConnectFailed(session.id, "timeout"))

    assert controller.session is None
    assert session.defunct
    assert ("disconnect", session.id) in transport.calls
    assert discovery.scanning
    assert discovery.starts == 2
    assert len(sink.of_type(SessionFailed)) == 1


def test_disconnect_while_active_rescans(controller, discovery, sink, device, services) -> None:
    activate(controller, device, services)

    controller.dispatch(Disconnected(controller.session.id))

    assert controller.session is None
    assert discovery.scanning
    assert len(sink.of_type(SessionFailed)) == 1


def test_connect_rejected_immediately_rescans(controller, transport, discovery, sink, device) -> None:
    transport.fail_requests.add("connect")

    controller.on_device_discovered(device)

    assert controller.session is None
    assert discovery.scanning
    assert len(sink.of_type(SessionFailed)) == 1


def test_stale_events_are_ignored(controller, transport, sink, device, services) -> None:
    controller.on_device_discovered(device)
    old_id = controller.session.id
    controller.dispatch(ConnectFailed(old_id))

    controller.on_device_discovered(device)
    current = controller.session
    assert current.id != old_id
    calls_before = list(transport.calls)
    events_before = list(sink.events)

    for event in handshake(old_id, services) + [Disconnected(old_id)]:
        controller.dispatch(event)

    assert controller.session is current
    assert current.state is HandshakeState.CONNECTING
    assert transport.calls == calls_before
    assert sink.events == events_before


def test_events_without_session_are_ignored(controller, transport, sink) -> None:
    controller.dispatch(Connected(1))

    assert transport.calls == []
    assert sink.events == []


def test_actions_are_relayed(controller, sink, device, services) -> None:
    activate(controller, device, services)

    controller.dispatch(CharacteristicChanged(controller.session.id, ACTION, b"\x00"))

    assert sink.events[-1] == ActionReceived(code=0, description="Swipe up")


def test_stop_while_active_cancels_override_before_disconnect(controller, transport, discovery, device, services) -> None:
    controller.start()
    activate(controller, device, services)
    session_id = controller.session.id

    controller.stop()

    assert transport.calls[-2:] == [
        ("write_characteristic", session_id, CMD, b"\x07"),
        ("disconnect", session_id),
    ]
    assert controller.session is None
    assert not discovery.scanning


def test_stop_never_raises(controller, transport, device, services) -> None:
    activate(controller, device, services)
    transport.fail_requests.update({"write_characteristic", "disconnect"})

    controller.stop()

    assert controller.session is None


def test_stop_is_idempotent(controller, transport, device) -> None:
    controller.stop()
    assert transport.calls == []

    controller.on_device_discovered(device)
    controller.stop()
    calls = list(transport.calls)
    controller.stop()

    assert transport.calls == calls


def test_events_after_stop_are_ignored(controller, transport, sink, device) -> None:
    controller.on_device_discovered(device)
    session_id = controller.session.id
    controller.stop()
    calls = list(transport.calls)

    controller.dispatch(Connected(session_id))

    assert transport.calls == calls
    assert not sink.of_type(SessionFailed)


def test_on_session_stopped_rescans(controller, transport, discovery, device) -> None:
    controller.on_device_discovered(device)
    session_id = controller.session.id

    controller.on_session_stopped()

    assert controller.session is None
    assert ("disconnect", session_id) in transport.calls
    assert discovery.scanning


class BrokenDiscovery(FakeDiscovery):
    def start(self) -> None:
        super().start()
        raise DiscoveryError("adapter unavailable")

    def stop(self) -> None:
        super().stop()
        raise DiscoveryError("adapter unavailable")


def test_discovery_errors_do_not_escape(transport, sink, device) -> None:
    discovery = BrokenDiscovery()
    controller = SessionController(transport, discovery, sink)

    controller.start()
    controller.on_device_discovered(device)
    assert controller.state is HandshakeState.CONNECTING

    controller.dispatch(ConnectFailed(controller.session.id, "timeout"))
    assert controller.session is None
    assert discovery.starts == 2
    assert len(sink.of_type(SessionFailed)) == 1

    controller.on_device_discovered(device)
    controller.on_session_stopped()
    controller.stop()
    assert controller.session is None


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_run_consumes_posted_events(controller, transport, discovery, sink, device, services) -> None:
    task = asyncio.create_task(controller.run())
    await _drain()
    assert discovery.scanning

    controller.post(DeviceDiscovered(device))
    await _drain()
    session_id = controller.session.id

    for event in handshake(session_id, services):
        controller.post(event)
    await _drain()
    assert controller.is_active

    controller.post(CharacteristicChanged(session_id, ACTION, b"\x09"))
    await _drain()
    assert sink.events[-1] == ActionReceived(code=9, description="Double click")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.session is None
    assert transport.calls[-1] == ("disconnect", session_id)
