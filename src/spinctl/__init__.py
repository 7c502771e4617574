"""
spinctl - SPIN remote SDC-1 client

Scans for a SPIN remote over Bluetooth LE, performs the connection
handshake and relays the remote's actions.
"""

from .core import __description__, __version__
from .controller import SessionController
from .display import DisplayManager
from .handshake import HandshakeMachine, HandshakeState, Session

__all__ = [
    "__description__",
    "__version__",
    "SessionController",
    "DisplayManager",
    "HandshakeMachine",
    "HandshakeState",
    "Session",
]
