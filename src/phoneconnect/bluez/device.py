"""BlueZ Device1 lookups for friendly device names."""

import logging

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

from .constants import BLUEZ_SERVICE, DEVICE_INTERFACE, OBJECT_MANAGER_INTERFACE

logger = logging.getLogger(__name__)


class BluezNameResolver:
    """Reads the Alias/Name that BlueZ holds for each known device.

    A bus may be passed in to share a connection; otherwise a system bus
    connection is opened for each lookup and closed afterwards.
    """

    def __init__(self, bus: MessageBus | None = None):
        self._bus = bus

    async def friendly_names(self) -> dict[str, str]:
        """Return ``{address: friendly name}`` for every device BlueZ knows.

        Returns an empty dict when D-Bus or BlueZ is unavailable.
        """
        bus = self._bus
        owns_bus = bus is None
        try:
            if owns_bus:
                bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
            introspection = await bus.introspect(BLUEZ_SERVICE, "/")
            proxy = bus.get_proxy_object(BLUEZ_SERVICE, "/", introspection)
            obj_manager = proxy.get_interface(OBJECT_MANAGER_INTERFACE)
            objects = await obj_manager.call_get_managed_objects()
        except (DBusError, OSError, EOFError) as e:
            logger.debug("BlueZ device names unavailable: %s", e)
            return {}
        finally:
            if owns_bus and bus is not None:
                bus.disconnect()

        names: dict[str, str] = {}
        for path, interfaces in objects.items():
            props = interfaces.get(DEVICE_INTERFACE)
            if props is None:
                continue

            def _val(key, _props=props):
                v = _props.get(key)
                if v is None:
                    return None
                return v.value if hasattr(v, "value") else v

            address = _val("Address")
            if not address:
                continue
            name = (_val("Alias") or _val("Name") or "").strip()
            if name:
                names[address.upper()] = name
        logger.debug("BlueZ knows %d named device(s)", len(names))
        return names

    async def get_name(self, address: str) -> str | None:
        """Get the friendly name for one device, or None if unknown."""
        names = await self.friendly_names()
        return names.get(address.upper())
