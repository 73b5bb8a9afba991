"""BlueZ D-Bus helpers for Bluetooth device names."""

from .device import BluezNameResolver

__all__ = ["BluezNameResolver"]
