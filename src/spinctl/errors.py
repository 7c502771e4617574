"""Domain-specific errors for spinctl."""


class SpinctlError(Exception):
    """Base error for spinctl."""


class ConfigError(SpinctlError, ValueError):
    """Raised when settings from the environment or CLI are invalid."""


class DiscoveryError(SpinctlError):
    """Raised when the Bluetooth scanner cannot be started or stopped."""


class ResolutionError(SpinctlError):
    """Raised when the peripheral lacks an expected service, characteristic or descriptor."""


class TransportError(SpinctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on GATT connect failures."""


class TransportSendError(TransportError):
    """Raised when a GATT request cannot be issued."""


class TransportTimeoutError(TransportError):
    """Raised when a GATT request times out."""
