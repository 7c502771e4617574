"""
Core constants for SPIN remote SDC-1 control.
"""

# Advertised service UUID used to recognise a SPIN remote while scanning
DISCOVERY_UUID = "9DFACA9D-7801-22A0-9540-F0BB65E824FC"

# SPIN service and its characteristics
SPIN_SERVICE_UUID = "5E5A10D3-6EC7-17AF-D743-3CF1679C1CC7"
COMMAND_CHARACTERISTIC_UUID = "92E92B18-FA20-D486-5E43-099387C61A71"
ACTION_CHARACTERISTIC_UUID = "182BEC1F-51A4-458E-4B48-C431EA701A3B"

# Client Characteristic Configuration Descriptor
CLIENT_CHARACTERISTIC_CONFIG_UUID = "00002902-0000-1000-8000-00805f9b34fb"
ENABLE_NOTIFICATION_VALUE = b"\x01\x00"

# Command ids understood by the command characteristic
CMD_CANCEL_LED_OVERRIDE = 0x07
CMD_FORCE_ACTION_NOTIFICATION = 0x08
CMD_SET_LED_COLOR = 0x09

# Handshake defaults
DEFAULT_LED_COLOR = (0xFF, 0x00, 0x00)
DEFAULT_CONNECT_TIMEOUT = 10.0

# Index in this table equals the action code reported by the remote
ACTION_DESCRIPTIONS = (
    "Swipe up",
    "Swipe right",
    "Swipe down",
    "Swipe left",
    "Swipe up and hold",
    "Swipe right and hold",
    "Swipe down and hold",
    "Swipe left and hold",
    "Click",
    "Double click",
    "Rotate clockwise",
    "Rotate counterclockwise",
    "Rotate clockwise while holding",
    "Rotate counterclockwise while holding",
)
UNKNOWN_ACTION_DESCRIPTION = "Unknown action"

# Application metadata
__version__ = "0.1.0"
__description__ = "Terminal client for the SPIN remote SDC-1 Bluetooth LE remote"
