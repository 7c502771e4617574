"""
Handshake state machine for a SPIN remote session.

Steps:
    1. Connect and wait for the connection
    2. Discover the GATT services
    3. Set the LED color and wait for the write to complete
    4. Enable action notifications and wait for the descriptor write
    5. Force an action notification and wait for the write to complete
    6. Relay action notifications

Exactly one transport request is outstanding at a time. Any failure moves
the session to FAILED and reports a single SessionFailed event.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple

from .core import (
    ACTION_CHARACTERISTIC_UUID,
    ACTION_DESCRIPTIONS,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    COMMAND_CHARACTERISTIC_UUID,
    DEFAULT_LED_COLOR,
    ENABLE_NOTIFICATION_VALUE,
    SPIN_SERVICE_UUID,
)
from .errors import ResolutionError, TransportError
from .events import (
    ActionReceived,
    CharacteristicChanged,
    CharacteristicWritten,
    Connected,
    DescriptorWritten,
    DeviceHandle,
    ServicesDiscovered,
    SessionActive,
    SessionFailed,
    TransportEvent,
)
from .protocol import (
    Command,
    decode_action,
    normalize_uuid,
    resolve_characteristic,
    resolve_descriptor,
)
from .transports.base import EventSink, Transport

logger = logging.getLogger(__name__)


class HandshakeState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering services"
    SETTING_LED_COLOR = "setting LED color"
    ENABLING_NOTIFICATION = "enabling notification"
    FORCING_NOTIFICATION = "forcing notification"
    ACTIVE = "active"
    FAILED = "failed"


class _StepFailed(Exception):
    """A handshake step could not be issued."""


@dataclass
class Session:
    """One connection lifecycle with a single peripheral."""

    id: int
    device: DeviceHandle
    state: HandshakeState = HandshakeState.IDLE
    services: Any = None
    command_characteristic: Any = None
    # State to enter once the outstanding command write completes
    expected: Optional[HandshakeState] = None
    defunct: bool = False


class HandshakeMachine:
    """Drives a Session through the fixed handshake sequence."""

    def __init__(
        self,
        transport: Transport,
        sink: EventSink,
        led_color: Tuple[int, int, int] = DEFAULT_LED_COLOR,
        descriptions: Sequence[str] = ACTION_DESCRIPTIONS,
    ) -> None:
        self._transport = transport
        self._sink = sink
        self._led_command = Command.set_led_color(*led_color)
        self._descriptions = descriptions

    def start(self, session: Session) -> HandshakeState:
        """Issue the connect request for a freshly discovered device."""
        if session.state is not HandshakeState.IDLE:
            return self._fail(session, f"cannot start from {session.state.name}")
        return self._step(
            session,
            HandshakeState.CONNECTING,
            lambda: self._transport.connect(session.id, session.device),
        )

    def handle(self, session: Session, event: TransportEvent) -> HandshakeState:
        """Apply one transport event and return the resulting state."""
        state = session.state

        if state in (HandshakeState.IDLE, HandshakeState.FAILED):
            logger.debug(f"Ignoring {type(event).__name__} in state {state.name}")
            return state

        if state is HandshakeState.ACTIVE and isinstance(event, CharacteristicChanged):
            if normalize_uuid(event.uuid) == normalize_uuid(ACTION_CHARACTERISTIC_UUID):
                self._relay(event)
            else:
                logger.debug(f"Ignoring notification from {event.uuid}")
            return state

        handler = self._handlers.get((state, type(event)))
        if handler is None:
            reason = getattr(event, "reason", "") or (
                f"unexpected {type(event).__name__} while {state.value}"
            )
            return self._fail(session, reason)
        return handler(self, session, event)

    def stop(self, session: Session) -> HandshakeState:
        """Cancel the LED override if possible and return the session to IDLE.

        The cancel write is best-effort and never raises; the remote falls
        back to its profile color on disconnect anyway.
        """
        characteristic = session.command_characteristic
        if characteristic is None and session.services is not None:
            try:
                characteristic = resolve_characteristic(
                    session.services, SPIN_SERVICE_UUID, COMMAND_CHARACTERISTIC_UUID
                )
            except ResolutionError:
                characteristic = None

        if characteristic is not None:
            try:
                self._transport.write_characteristic(
                    session.id, characteristic, Command.cancel_led_override().payload
                )
            except Exception as e:
                logger.debug(f"Cancel LED override failed: {e}")

        session.expected = None
        self._transition(session, HandshakeState.IDLE)
        return session.state

    # ---- transitions ----

    def _on_connected(self, session: Session, event: Connected) -> HandshakeState:
        return self._step(
            session,
            HandshakeState.DISCOVERING_SERVICES,
            lambda: self._transport.discover_services(session.id),
        )

    def _on_services_discovered(
        self, session: Session, event: ServicesDiscovered
    ) -> HandshakeState:
        def issue() -> None:
            session.services = event.services
            session.command_characteristic = resolve_characteristic(
                session.services, SPIN_SERVICE_UUID, COMMAND_CHARACTERISTIC_UUID
            )
            session.expected = HandshakeState.ENABLING_NOTIFICATION
            self._write_command(session, self._led_command)

        return self._step(session, HandshakeState.SETTING_LED_COLOR, issue)

    def _on_command_written(
        self, session: Session, event: CharacteristicWritten
    ) -> HandshakeState:
        if not event.success:
            return self._fail(session, "command write failed")
        if normalize_uuid(event.uuid) != normalize_uuid(COMMAND_CHARACTERISTIC_UUID):
            return self._fail(session, f"write completed for unexpected {event.uuid}")

        expected, session.expected = session.expected, None
        if (
            expected is HandshakeState.ENABLING_NOTIFICATION
            and session.state is HandshakeState.SETTING_LED_COLOR
        ):
            return self._step(
                session,
                HandshakeState.ENABLING_NOTIFICATION,
                lambda: self._enable_action_notification(session),
            )
        if (
            expected is HandshakeState.ACTIVE
            and session.state is HandshakeState.FORCING_NOTIFICATION
        ):
            self._transition(session, HandshakeState.ACTIVE)
            logger.info(f"Session {session.id} active for {session.device.address}")
            self._sink.emit(SessionActive(address=session.device.address))
            return session.state
        return self._fail(session, "command write completed out of sequence")

    def _on_descriptor_written(
        self, session: Session, event: DescriptorWritten
    ) -> HandshakeState:
        if not event.success:
            return self._fail(session, "descriptor write failed")

        def issue() -> None:
            session.expected = HandshakeState.ACTIVE
            self._write_command(session, Command.force_action_notification(True))

        return self._step(session, HandshakeState.FORCING_NOTIFICATION, issue)

    _handlers = {
        (HandshakeState.CONNECTING, Connected): _on_connected,
        (HandshakeState.DISCOVERING_SERVICES, ServicesDiscovered): _on_services_discovered,
        (HandshakeState.SETTING_LED_COLOR, CharacteristicWritten): _on_command_written,
        (HandshakeState.ENABLING_NOTIFICATION, DescriptorWritten): _on_descriptor_written,
        (HandshakeState.FORCING_NOTIFICATION, CharacteristicWritten): _on_command_written,
    }

    # ---- helpers ----

    def _enable_action_notification(self, session: Session) -> None:
        action = resolve_characteristic(
            session.services, SPIN_SERVICE_UUID, ACTION_CHARACTERISTIC_UUID
        )
        descriptor = resolve_descriptor(action, CLIENT_CHARACTERISTIC_CONFIG_UUID)
        if not self._transport.enable_notifications(session.id, action):
            raise _StepFailed("could not enable local notification delivery")
        self._transport.write_descriptor(
            session.id, descriptor, ENABLE_NOTIFICATION_VALUE
        )

    def _write_command(self, session: Session, command: Command) -> None:
        self._transport.write_characteristic(
            session.id, session.command_characteristic, command.payload
        )

    def _step(
        self, session: Session, target: HandshakeState, issue: Callable[[], None]
    ) -> HandshakeState:
        # The target state is entered before its request is issued
        self._transition(session, target)
        try:
            issue()
        except ResolutionError as e:
            return self._fail(session, f"incompatible peripheral: {e}")
        except (TransportError, _StepFailed) as e:
            return self._fail(session, str(e))
        return session.state

    def _relay(self, event: CharacteristicChanged) -> None:
        action = decode_action(event.data, self._descriptions)
        if action is None:
            logger.debug("Dropping empty action notification")
            return
        logger.debug(f"Action {action.code}: {action.description}")
        self._sink.emit(ActionReceived(code=action.code, description=action.description))

    def _transition(self, session: Session, target: HandshakeState) -> None:
        logger.debug(f"Session {session.id}: {session.state.name} -> {target.name}")
        session.state = target

    def _fail(self, session: Session, reason: str) -> HandshakeState:
        session.expected = None
        self._transition(session, HandshakeState.FAILED)
        logger.warning(f"Session {session.id} failed: {reason}")
        self._sink.emit(SessionFailed(address=session.device.address, reason=reason))
        return session.state
