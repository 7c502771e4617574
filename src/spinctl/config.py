"""
Runtime settings for spinctl.

Defaults come from ``spinctl.core`` and may be overridden by environment
variables, which are in turn overridden by command-line flags.
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple

from .core import DEFAULT_CONNECT_TIMEOUT, DEFAULT_LED_COLOR, DISCOVERY_UUID
from .errors import ConfigError

ENV_CONNECT_TIMEOUT = "SPINCTL_CONNECT_TIMEOUT"
ENV_LED_COLOR = "SPINCTL_LED_COLOR"


def parse_timeout(value: str) -> float:
    """Parse a positive timeout in seconds."""
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigError(f"Invalid timeout: {value!r}") from None
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive, got {value!r}")
    return timeout


def parse_led_color(value: str) -> Tuple[int, int, int]:
    """Parse an ``rrggbb`` hex string (optionally prefixed with ``#``)."""
    text = value.strip().lstrip("#")
    if len(text) != 6:
        raise ConfigError(f"LED color must be 6 hex digits (rrggbb), got {value!r}")
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ConfigError(f"Invalid LED color: {value!r}") from None
    return (raw[0], raw[1], raw[2])


@dataclass(frozen=True)
class Settings:
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    led_color: Tuple[int, int, int] = DEFAULT_LED_COLOR
    scan_filter_uuid: str = DISCOVERY_UUID

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigError: if a variable is set to an invalid value
        """
        env = os.environ if environ is None else environ
        settings = cls()
        timeout = env.get(ENV_CONNECT_TIMEOUT)
        if timeout:
            settings = replace(settings, connect_timeout=parse_timeout(timeout))
        color = env.get(ENV_LED_COLOR)
        if color:
            settings = replace(settings, led_color=parse_led_color(color))
        return settings
