"""BLE discovery of SPIN remotes using bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakScanner

from spinctl.core import DISCOVERY_UUID
from spinctl.errors import DiscoveryError
from spinctl.events import DeviceDiscovered, DeviceHandle
from spinctl.protocol import normalize_uuid

logger = logging.getLogger(__name__)


def advertises(adv: Any, uuid: str) -> bool:
    """Check whether advertisement data lists a service UUID."""
    service_uuids = getattr(adv, "service_uuids", None) or []
    return normalize_uuid(uuid) in {normalize_uuid(u) for u in service_uuids}


def device_handle(device: Any, adv: Any) -> DeviceHandle:
    return DeviceHandle(
        address=device.address,
        rssi=adv.rssi,
        name=device.name or getattr(adv, "local_name", None),
        native=device,
    )


class BleakDiscovery:
    """Continuous scanner reporting advertisements that carry the discovery UUID.

    A scanner that fails to start is retried every ``retry_delay`` seconds
    until it starts or discovery is stopped.
    """

    def __init__(
        self,
        *,
        filter_uuid: str = DISCOVERY_UUID,
        scanner_factory: Callable[..., Any] = BleakScanner,
        retry_delay: float = 5.0,
    ) -> None:
        self._filter_uuid = filter_uuid
        self._retry_delay = retry_delay
        self._scanner_factory = scanner_factory
        self._on_device: Callable[[DeviceDiscovered], None] | None = None
        self._scanner: Any = None
        self._scanning = False
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def set_on_device(self, callback: Callable[[DeviceDiscovered], None]) -> None:
        self._on_device = callback

    def start(self) -> None:
        if self._scanning:
            return
        self._scanning = True
        try:
            self._spawn(self._start())
        except DiscoveryError:
            self._scanning = False
            raise

    def stop(self) -> None:
        if not self._scanning:
            return
        self._scanning = False
        self._spawn(self._stop())

    async def close(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _detection_callback(self, device: Any, adv: Any) -> None:
        if not self._scanning or not advertises(adv, self._filter_uuid):
            return
        handle = device_handle(device, adv)
        logger.debug(f"Found SPIN remote {handle.address} (RSSI {handle.rssi})")
        if self._on_device is not None:
            self._on_device(DeviceDiscovered(handle))

    async def _start(self) -> None:
        while True:
            async with self._lock:
                if self._scanner is not None:
                    return
                scanner = self._scanner_factory(
                    detection_callback=self._detection_callback,
                    service_uuids=[normalize_uuid(self._filter_uuid)],
                )
                try:
                    await scanner.start()
                except Exception as exc:
                    logger.error(
                        f"Scanner start failed: {exc}, retrying in {self._retry_delay:g}s"
                    )
                else:
                    self._scanner = scanner
                    return
            await asyncio.sleep(self._retry_delay)
            if not self._scanning:
                return

    async def _stop(self) -> None:
        async with self._lock:
            scanner, self._scanner = self._scanner, None
            if scanner is None:
                return
            try:
                await scanner.stop()
            except Exception as exc:
                logger.error(f"Scanner stop failed: {exc}")

    def _spawn(self, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            coro.close()
            raise DiscoveryError("BLE discovery requires a running event loop") from exc
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


async def find_remotes(
    timeout: float = 5.0, filter_uuid: str = DISCOVERY_UUID
) -> list[DeviceHandle]:
    """Scan once and return every SPIN remote seen, strongest signal first."""
    try:
        found = await BleakScanner.discover(
            timeout=timeout,
            return_adv=True,
            service_uuids=[normalize_uuid(filter_uuid)],
        )
    except Exception as exc:
        raise DiscoveryError(f"Bluetooth scan failed: {exc}") from exc

    handles = [
        device_handle(device, adv)
        for device, adv in found.values()
        if advertises(adv, filter_uuid)
    ]
    return sorted(handles, key=lambda h: h.rssi, reverse=True)
