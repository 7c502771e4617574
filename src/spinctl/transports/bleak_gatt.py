"""BLE GATT transport implementation on top of bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from bleak import BleakClient

from spinctl.core import CLIENT_CHARACTERISTIC_CONFIG_UUID, DEFAULT_CONNECT_TIMEOUT
from spinctl.errors import TransportSendError
from spinctl.events import (
    CharacteristicChanged,
    CharacteristicWritten,
    ConnectFailed,
    Connected,
    DescriptorWritten,
    DeviceHandle,
    Disconnected,
    ServiceDiscoveryFailed,
    ServicesDiscovered,
    TransportEvent,
)
from spinctl.protocol import normalize_uuid

logger = logging.getLogger(__name__)


class BleakTransport:
    """Fire-and-forget GATT requests reported back as transport events.

    GATT operations are serialized behind one lock, so a write issued right
    before ``disconnect`` reaches the peripheral first. Notifications that
    arrive while a characteristic write is in flight are held back until the
    write has been reported, so a response triggered by the write never
    overtakes its completion.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        request_timeout: float = 5.0,
        client_factory: Callable[..., Any] = BleakClient,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._request_timeout = request_timeout
        self._client_factory = client_factory
        self._on_event: Callable[[TransportEvent], None] | None = None
        self._clients: dict[int, Any] = {}
        self._notify_targets: dict[int, dict[str, Any]] = {}
        self._held: dict[int, list[TransportEvent]] = {}
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    def set_on_event(self, callback: Callable[[TransportEvent], None]) -> None:
        self._on_event = callback

    def connect(self, session_id: int, device: DeviceHandle) -> None:
        client = self._client_factory(
            device.native if device.native is not None else device.address,
            disconnected_callback=lambda _: self._emit(Disconnected(session_id)),
            timeout=self._connect_timeout,
        )
        self._clients[session_id] = client
        self._spawn(self._connect(session_id, client))

    def discover_services(self, session_id: int) -> None:
        client = self._client(session_id)
        self._spawn(self._discover_services(session_id, client))

    def write_characteristic(self, session_id: int, characteristic: Any, data: bytes) -> None:
        client = self._client(session_id)
        self._spawn(self._write_characteristic(session_id, client, characteristic, bytes(data)))

    def enable_notifications(self, session_id: int, characteristic: Any) -> bool:
        if session_id not in self._clients:
            return False
        targets = self._notify_targets.setdefault(session_id, {})
        targets[normalize_uuid(characteristic.uuid)] = characteristic
        return True

    def write_descriptor(self, session_id: int, descriptor: Any, data: bytes) -> None:
        client = self._client(session_id)
        self._spawn(self._write_descriptor(session_id, client, descriptor, bytes(data)))

    def disconnect(self, session_id: int) -> None:
        self._notify_targets.pop(session_id, None)
        self._held.pop(session_id, None)
        client = self._clients.pop(session_id, None)
        if client is None:
            return
        try:
            self._spawn(self._disconnect(client))
        except TransportSendError as exc:
            logger.error(f"Could not schedule disconnect: {exc}")

    async def close(self) -> None:
        """Wait for outstanding requests, including pending disconnects."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---- coroutines ----

    async def _connect(self, session_id: int, client: Any) -> None:
        try:
            async with self._lock:
                await client.connect()
        except Exception as exc:
            self._emit(ConnectFailed(session_id, f"connect failed: {exc}"))
            return
        self._emit(Connected(session_id))

    async def _discover_services(self, session_id: int, client: Any) -> None:
        # bleak resolves the service collection as part of connecting
        try:
            services = client.services
        except Exception as exc:
            self._emit(ServiceDiscoveryFailed(session_id, f"service discovery failed: {exc}"))
            return
        self._emit(ServicesDiscovered(session_id, services))

    async def _write_characteristic(
        self, session_id: int, client: Any, characteristic: Any, data: bytes
    ) -> None:
        success = True
        try:
            async with self._lock:
                self._held[session_id] = []
                await asyncio.wait_for(
                    client.write_gatt_char(characteristic, data, response=True),
                    timeout=self._request_timeout,
                )
        except asyncio.CancelledError:
            self._held.pop(session_id, None)
            raise
        except Exception as exc:
            logger.warning(f"Write to {characteristic.uuid} failed: {exc}")
            success = False
        self._emit(CharacteristicWritten(session_id, str(characteristic.uuid), data, success))
        for event in self._held.pop(session_id, []):
            self._emit(event)

    async def _write_descriptor(
        self, session_id: int, client: Any, descriptor: Any, data: bytes
    ) -> None:
        target = None
        if normalize_uuid(descriptor.uuid) == normalize_uuid(CLIENT_CHARACTERISTIC_CONFIG_UUID):
            owner = normalize_uuid(getattr(descriptor, "characteristic_uuid", ""))
            target = self._notify_targets.get(session_id, {}).get(owner)

        success = True
        try:
            async with self._lock:
                if target is not None:
                    # start_notify writes the CCCD itself and routes notifications
                    request = client.start_notify(target, self._notification_handler(session_id))
                else:
                    request = client.write_gatt_descriptor(descriptor.handle, data)
                await asyncio.wait_for(request, timeout=self._request_timeout)
        except Exception as exc:
            logger.warning(f"Write to descriptor {descriptor.uuid} failed: {exc}")
            success = False
        self._emit(DescriptorWritten(session_id, str(descriptor.uuid), success))

    async def _disconnect(self, client: Any) -> None:
        try:
            async with self._lock:
                await client.disconnect()
        except Exception as exc:
            logger.debug(f"Disconnect raised: {exc}")

    # ---- helpers ----

    def _notification_handler(self, session_id: int) -> Callable[[Any, bytearray], None]:
        def _handler(sender: Any, data: bytearray) -> None:
            event = CharacteristicChanged(session_id, str(sender.uuid), bytes(data))
            held = self._held.get(session_id)
            if held is not None:
                held.append(event)
            else:
                self._emit(event)

        return _handler

    def _client(self, session_id: int) -> Any:
        client = self._clients.get(session_id)
        if client is None:
            raise TransportSendError(f"No connection for session {session_id}")
        return client

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            coro.close()
            raise TransportSendError("BLE transport requires a running event loop") from exc
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _emit(self, event: TransportEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
