"""Exceptions raised by the dialer and the Bluetooth call-audio subsystem.

Everything the CLI reports to the user derives from :class:`DialError`.
"""


class DialError(Exception):
    """Base class for all user-facing errors."""


# -- Config --


class ConfigNotFound(DialError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Config file not found at {path}.\n"
            "Run `dial config init` to create one."
        )


class ConfigError(DialError):
    """Raised when the config file exists but cannot be parsed."""


# -- Validation --


class InvalidPhoneNumber(DialError):
    def __init__(self, number: str):
        self.number = number
        super().__init__(
            f"Invalid phone number '{number}'. Use E.164 format, e.g. +919876543210"
        )


class EmptyDeviceId(DialError):
    def __init__(self):
        super().__init__("Device ID must not be empty")


# -- Gateway API --


class GatewayError(DialError):
    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Gateway returned {status}: {body}")


class GatewayUnreachable(DialError):
    """Raised when the HTTP request itself fails (DNS, refused, timeout)."""


class DeviceOffline(DialError):
    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"Device '{device_id}' is not connected to the gateway")


class Unauthorized(DialError):
    def __init__(self):
        super().__init__("Unauthorized - check the token in your config file")


# -- Bluetooth call audio --


class BluetoothError(DialError):
    """Base class for Bluetooth call-audio failures."""


class NoTelephonyProfile(BluetoothError):
    def __init__(self, card_name: str, available: list[str]):
        self.card_name = card_name
        self.available = list(available)
        super().__init__(
            f"Could not switch {card_name} to HFP.\n"
            "Make sure the device is paired, connected, and Bluetooth is on.\n"
            f"Available profiles: {self.available}"
        )


class NoMusicProfile(BluetoothError):
    def __init__(self, card_name: str, available: list[str]):
        self.card_name = card_name
        self.available = list(available)
        super().__init__(
            f"Could not switch {card_name} back to A2DP.\n"
            f"Available profiles: {self.available}"
        )


class NodeTimeout(BluetoothError):
    def __init__(self, source: str, sink: str, timeout: float):
        self.source = source
        self.sink = sink
        self.timeout = timeout
        super().__init__(
            f"HFP audio nodes did not appear within {timeout:g}s\n"
            f"  Expected: source={source} / sink={sink}\n"
            "  Make sure the headset is paired, powered, and within range."
        )


class BridgeSpawnFailed(BluetoothError):
    def __init__(self, which: str, reason: str):
        self.which = which
        self.reason = reason
        super().__init__(f"Failed to start {which}-loopback: {reason}")


class PlatformUnsupported(BluetoothError):
    """Raised on platforms where call audio is handled by the OS itself."""
