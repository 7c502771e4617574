"""Fakes standing in for the Bluetooth backends and the display."""

from __future__ import annotations

from spinctl.core import (
    ACTION_CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    COMMAND_CHARACTERISTIC_UUID,
    SPIN_SERVICE_UUID,
)
from spinctl.errors import TransportSendError
from spinctl.events import DeviceHandle


class FakeDescriptor:
    def __init__(self, uuid: str, characteristic_uuid: str = "", handle: int = 0) -> None:
        self.uuid = uuid.lower()
        self.characteristic_uuid = characteristic_uuid.lower()
        self.handle = handle


class FakeCharacteristic:
    def __init__(self, uuid: str, descriptors: list[FakeDescriptor] | None = None) -> None:
        self.uuid = uuid.lower()
        self.descriptors = {d.uuid: d for d in descriptors or []}

    def get_descriptor(self, uuid: str) -> FakeDescriptor | None:
        return self.descriptors.get(uuid.lower())


class FakeService:
    def __init__(self, uuid: str, characteristics: list[FakeCharacteristic]) -> None:
        self.uuid = uuid.lower()
        self.characteristics = {c.uuid: c for c in characteristics}

    def get_characteristic(self, uuid: str) -> FakeCharacteristic | None:
        return self.characteristics.get(uuid.lower())


class FakeServiceMap:
    def __init__(self, services: list[FakeService]) -> None:
        self.services = {s.uuid: s for s in services}

    def get_service(self, uuid: str) -> FakeService | None:
        return self.services.get(uuid.lower())


def spin_services(
    *,
    service: bool = True,
    command: bool = True,
    action: bool = True,
    cccd: bool = True,
) -> FakeServiceMap:
    """Service map of a SPIN remote, optionally missing parts."""
    if not service:
        return FakeServiceMap([])
    characteristics = []
    if command:
        characteristics.append(FakeCharacteristic(COMMAND_CHARACTERISTIC_UUID))
    if action:
        descriptors = (
            [FakeDescriptor(CLIENT_CHARACTERISTIC_CONFIG_UUID, ACTION_CHARACTERISTIC_UUID, 42)]
            if cccd
            else []
        )
        characteristics.append(FakeCharacteristic(ACTION_CHARACTERISTIC_UUID, descriptors))
    return FakeServiceMap([FakeService(SPIN_SERVICE_UUID, characteristics)])


class FakeTransport:
    """Records every request instead of talking to a peripheral."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.on_event = None
        self.enable_result = True
        self.fail_requests: set[str] = set()

    @property
    def requests(self) -> list[str]:
        """Names of the handshake requests issued, excluding disconnects."""
        return [call[0] for call in self.calls if call[0] != "disconnect"]

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_requests:
            raise TransportSendError(f"{name} rejected")

    def set_on_event(self, callback) -> None:
        self.on_event = callback

    def connect(self, session_id: int, device: DeviceHandle) -> None:
        self._record("connect", session_id, device.address)

    def discover_services(self, session_id: int) -> None:
        self._record("discover_services", session_id)

    def write_characteristic(self, session_id: int, characteristic, data: bytes) -> None:
        self._record("write_characteristic", session_id, characteristic.uuid, bytes(data))

    def enable_notifications(self, session_id: int, characteristic) -> bool:
        self._record("enable_notifications", session_id, characteristic.uuid)
        return self.enable_result

    def write_descriptor(self, session_id: int, descriptor, data: bytes) -> None:
        self._record("write_descriptor", session_id, descriptor.uuid, bytes(data))

    def disconnect(self, session_id: int) -> None:
        self._record("disconnect", session_id)


class FakeDiscovery:
    def __init__(self) -> None:
        self.on_device = None
        self.scanning = False
        self.starts = 0
        self.stops = 0

    def set_on_device(self, callback) -> None:
        self.on_device = callback

    def start(self) -> None:
        self.starts += 1
        self.scanning = True

    def stop(self) -> None:
        self.stops += 1
        self.scanning = False


class RecordingSink:
    def __init__(self) -> None:
        self.events: list = []

    def emit(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]


