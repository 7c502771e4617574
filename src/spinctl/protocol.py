"""
Wire messages for the SPIN remote command and action characteristics.

Commands are written to the command characteristic as a one byte command id
followed by its arguments. Actions arrive as notifications on the action
characteristic, the first byte being the action code.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .core import (
    ACTION_DESCRIPTIONS,
    CMD_CANCEL_LED_OVERRIDE,
    CMD_FORCE_ACTION_NOTIFICATION,
    CMD_SET_LED_COLOR,
    UNKNOWN_ACTION_DESCRIPTION,
)
from .errors import ResolutionError


def normalize_uuid(uuid: Any) -> str:
    """Return the canonical lowercase string form of a UUID."""
    return str(uuid).lower()


def _byte(name: str, value: int) -> int:
    if not isinstance(value, int) or not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be in range 0-255, got {value!r}")
    return value


@dataclass(frozen=True)
class Command:
    """Outbound command for the command characteristic."""

    command_id: int
    arguments: bytes = b""

    @property
    def payload(self) -> bytes:
        return bytes([self.command_id]) + self.arguments

    @classmethod
    def set_led_color(cls, red: int, green: int, blue: int) -> "Command":
        """Override the LED color of the remote.

        Bytes are written positionally, so red 0xFF0000 is ``09 FF 00 00``.
        """
        return cls(
            CMD_SET_LED_COLOR,
            bytes([_byte("red", red), _byte("green", green), _byte("blue", blue)]),
        )

    @classmethod
    def force_action_notification(cls, enable: bool = True) -> "Command":
        """Ask the remote to notify its current action immediately."""
        if enable not in (0, 1):
            raise ValueError(f"enable must be 0 or 1, got {enable!r}")
        return cls(CMD_FORCE_ACTION_NOTIFICATION, bytes([int(enable)]))

    @classmethod
    def cancel_led_override(cls) -> "Command":
        """Hand LED control back to the remote's active profile."""
        return cls(CMD_CANCEL_LED_OVERRIDE)


@dataclass(frozen=True)
class ActionEvent:
    """A single action reported by the remote."""

    code: int
    description: str


def describe_action(
    code: int, descriptions: Sequence[str] = ACTION_DESCRIPTIONS
) -> str:
    """Look up the human-readable description for an action code."""
    if 0 <= code < len(descriptions):
        return descriptions[code]
    return UNKNOWN_ACTION_DESCRIPTION


def decode_action(
    data: bytes, descriptions: Sequence[str] = ACTION_DESCRIPTIONS
) -> Optional[ActionEvent]:
    """Decode an action notification.

    Args:
        data: Raw notification payload
        descriptions: Description table indexed by action code

    Returns:
        ActionEvent for the first byte (uint8), None for an empty payload
    """
    if not data:
        return None
    code = data[0]
    return ActionEvent(code=code, description=describe_action(code, descriptions))


def resolve_characteristic(services: Any, service_uuid: str, char_uuid: str) -> Any:
    """Find a characteristic within a discovered service map.

    Raises:
        ResolutionError: if the service or the characteristic is missing
    """
    if services is None:
        raise ResolutionError("Services have not been discovered")
    service = services.get_service(normalize_uuid(service_uuid))
    if service is None:
        raise ResolutionError(f"Service {service_uuid} not found")
    characteristic = service.get_characteristic(normalize_uuid(char_uuid))
    if characteristic is None:
        raise ResolutionError(f"Characteristic {char_uuid} not found")
    return characteristic


def resolve_descriptor(characteristic: Any, descriptor_uuid: str) -> Any:
    """Find a descriptor attached to a characteristic.

    Raises:
        ResolutionError: if the descriptor is missing
    """
    descriptor = characteristic.get_descriptor(normalize_uuid(descriptor_uuid))
    if descriptor is None:
        raise ResolutionError(
            f"Descriptor {descriptor_uuid} not found on {characteristic.uuid}"
        )
    return descriptor
