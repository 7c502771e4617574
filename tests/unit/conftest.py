from __future__ import annotations

import pytest

from fakes import FakeDiscovery, FakeServiceMap, FakeTransport, RecordingSink, spin_services
from spinctl.events import DeviceHandle


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def device() -> DeviceHandle:
    return DeviceHandle(address="C4:7F:51:00:12:34", rssi=-58, name="SPIN remote")


@pytest.fixture
def services() -> FakeServiceMap:
    return spin_services()


@pytest.fixture
def make_services():
    return spin_services
