"""
Events flowing through a session.

Transport events report the completion of a GATT request (or an unsolicited
notification) and are tagged with the id of the session that issued it.
Sink events are what the session reports outwards for display.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class DeviceHandle:
    """A discovered peripheral."""

    address: str
    rssi: int
    name: Optional[str] = None
    # Backend device object (e.g. bleak BLEDevice) used to connect
    native: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class DeviceDiscovered:
    device: DeviceHandle


# ---- Transport events ----


@dataclass(frozen=True)
class Connected:
    session_id: int


@dataclass(frozen=True)
class ConnectFailed:
    session_id: int
    reason: str = ""


@dataclass(frozen=True)
class Disconnected:
    session_id: int


@dataclass(frozen=True)
class ServicesDiscovered:
    session_id: int
    services: Any


@dataclass(frozen=True)
class ServiceDiscoveryFailed:
    session_id: int
    reason: str = ""


@dataclass(frozen=True)
class CharacteristicWritten:
    session_id: int
    uuid: str
    payload: bytes
    success: bool = True


@dataclass(frozen=True)
class DescriptorWritten:
    session_id: int
    uuid: str
    success: bool = True


@dataclass(frozen=True)
class CharacteristicChanged:
    session_id: int
    uuid: str
    data: bytes


TransportEvent = Union[
    Connected,
    ConnectFailed,
    Disconnected,
    ServicesDiscovered,
    ServiceDiscoveryFailed,
    CharacteristicWritten,
    DescriptorWritten,
    CharacteristicChanged,
]


# ---- Sink events ----


@dataclass(frozen=True)
class DeviceFound:
    address: str
    rssi: int


@dataclass(frozen=True)
class SessionActive:
    address: str


@dataclass(frozen=True)
class SessionFailed:
    address: str
    reason: str = ""


@dataclass(frozen=True)
class ActionReceived:
    code: int
    description: str


SinkEvent = Union[DeviceFound, SessionActive, SessionFailed, ActionReceived]
