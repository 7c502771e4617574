"""
Session controller for SPIN remote connections.

Owns the single active session, turns discovery results into new sessions
and tears sessions down on failure or shutdown. All discovery and transport
events go through one asyncio queue so session state is only ever mutated
by a single consumer.
"""

import asyncio
import itertools
import logging
from typing import Optional, Union

from .events import DeviceDiscovered, DeviceFound, DeviceHandle, TransportEvent
from .handshake import HandshakeMachine, HandshakeState, Session
from .transports.base import Discovery, EventSink, Transport

logger = logging.getLogger(__name__)


class SessionController:
    """Manages discovery and the lifecycle of at most one session."""

    def __init__(
        self,
        transport: Transport,
        discovery: Discovery,
        sink: EventSink,
        machine: Optional[HandshakeMachine] = None,
    ) -> None:
        """Initialize controller and register event callbacks.

        Args:
            transport: GATT request capability
            discovery: Scanner yielding DeviceDiscovered events
            sink: Receiver for session events
            machine: Handshake state machine (one is built if None)
        """
        self._transport = transport
        self._discovery = discovery
        self._sink = sink
        self._machine = machine or HandshakeMachine(transport, sink)
        self._session: Optional[Session] = None
        self._session_ids = itertools.count(1)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False

        self._transport.set_on_event(self.post)
        self._discovery.set_on_device(self.post)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> HandshakeState:
        """Current handshake state, IDLE when no session exists."""
        if self._session is None:
            return HandshakeState.IDLE
        return self._session.state

    @property
    def is_active(self) -> bool:
        return self.state is HandshakeState.ACTIVE

    def start(self) -> None:
        """Start scanning for a remote. Never raises to the caller."""
        logger.info("Scanning for SPIN remote...")
        try:
            self._discovery.start()
        except Exception as e:
            logger.error(f"Starting discovery failed: {e}")

    def on_device_discovered(self, device: DeviceHandle) -> None:
        """Create a session for a discovered device unless one already exists."""
        if self._session is not None:
            logger.debug(f"Ignoring {device.address}, session already in progress")
            return

        self._stop_discovery()
        self._sink.emit(DeviceFound(address=device.address, rssi=device.rssi))

        session = Session(id=next(self._session_ids), device=device)
        self._session = session
        logger.info(f"Connecting to {device.address} (RSSI {device.rssi})")

        if self._machine.start(session) is HandshakeState.FAILED:
            self.on_handshake_failed()

    def dispatch(self, event: TransportEvent) -> None:
        """Apply a transport event to the current session.

        Events tagged with any other session id are stale and dropped.
        """
        session = self._session
        if session is None or session.defunct or event.session_id != session.id:
            logger.debug(
                f"Dropping stale {type(event).__name__} for session {event.session_id}"
            )
            return

        if self._machine.handle(session, event) is HandshakeState.FAILED:
            self.on_handshake_failed()

    def on_handshake_failed(self) -> None:
        """Discard the failed session and resume scanning."""
        self._teardown()
        self.start()

    def on_session_stopped(self) -> None:
        """Discard a session ended from outside the handshake and resume scanning."""
        self._teardown()
        self.start()

    def stop(self) -> None:
        """Stop scanning and end the current session.

        Idempotent, and never raises to the caller.
        """
        self._stop_discovery()

        if self._session is None:
            return

        self._machine.stop(self._session)
        self._teardown()

    def post(self, event: Union[DeviceDiscovered, TransportEvent]) -> None:
        """Queue an event for the consumer. Safe to call from any thread."""
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        else:
            self._queue.put_nowait(event)

    def process(self, event: Union[DeviceDiscovered, TransportEvent]) -> None:
        """Route one queued event."""
        if isinstance(event, DeviceDiscovered):
            self.on_device_discovered(event.device)
        else:
            self.dispatch(event)

    async def run(self) -> None:
        """Consume events until cancelled."""
        self._loop = asyncio.get_running_loop()
        self._running = True
        self.start()
        try:
            while self._running:
                event = await self._queue.get()
                try:
                    self.process(event)
                except Exception as e:
                    logger.exception(f"Event handler error: {e}")
        finally:
            self._running = False
            self.stop()

    def _stop_discovery(self) -> None:
        try:
            self._discovery.stop()
        except Exception as e:
            logger.error(f"Stopping discovery failed: {e}")

    def _teardown(self) -> None:
        session = self._session
        if session is None:
            return

        session.defunct = True
        self._session = None
        try:
            self._transport.disconnect(session.id)
        except Exception as e:
            logger.error(f"Disconnect failed: {e}")
        logger.info(f"Session {session.id} closed")
