"""Capability interfaces consumed by the handshake and session controller."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from spinctl.events import DeviceDiscovered, DeviceHandle, SinkEvent, TransportEvent


class Descriptor(Protocol):
    uuid: str


class Characteristic(Protocol):
    uuid: str

    def get_descriptor(self, uuid: str) -> Optional[Descriptor]:
        """Return the descriptor with this UUID, or None."""


class Service(Protocol):
    uuid: str

    def get_characteristic(self, uuid: str) -> Optional[Characteristic]:
        """Return the characteristic with this UUID, or None."""


class ServiceMap(Protocol):
    def get_service(self, uuid: str) -> Optional[Service]:
        """Return the service with this UUID, or None."""


class Transport(Protocol):
    """Asynchronous GATT request capability.

    Every request returns immediately. Its outcome is reported later through
    the callback registered with ``set_on_event``, tagged with ``session_id``.
    """

    def set_on_event(self, callback: Callable[[TransportEvent], None]) -> None:
        ...

    def connect(self, session_id: int, device: DeviceHandle) -> None:
        ...

    def discover_services(self, session_id: int) -> None:
        ...

    def write_characteristic(
        self, session_id: int, characteristic: Any, data: bytes
    ) -> None:
        ...

    def enable_notifications(self, session_id: int, characteristic: Any) -> bool:
        """Turn on local delivery of notifications for a characteristic."""

    def write_descriptor(self, session_id: int, descriptor: Any, data: bytes) -> None:
        ...

    def disconnect(self, session_id: int) -> None:
        """Release all resources of the session's connection. Idempotent."""


class Discovery(Protocol):
    def set_on_device(self, callback: Callable[[DeviceDiscovered], None]) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class EventSink(Protocol):
    def emit(self, event: SinkEvent) -> None:
        """Receive a session event. Must not block."""
