"""LAN discovery of the PhoneConnect gateway via mDNS / DNS-SD.

The gateway advertises ``_phoneconnect._tcp``.  Browsing goes through the
Avahi daemon's D-Bus API on the system bus, so no extra mDNS stack is
needed.  ItemNew signals can arrive before ServiceBrowserNew returns the
browser's object path, so every signal is queued and filtered afterwards.
"""

import asyncio
import ipaddress
import logging
from dataclasses import dataclass

from dbus_next import BusType, Message, MessageType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

logger = logging.getLogger(__name__)

SERVICE_TYPE = "_phoneconnect._tcp"
SERVICE_DOMAIN = "local"

AVAHI_SERVICE = "org.freedesktop.Avahi"
AVAHI_SERVER_INTERFACE = "org.freedesktop.Avahi.Server"
AVAHI_BROWSER_INTERFACE = "org.freedesktop.Avahi.ServiceBrowser"
AVAHI_IF_UNSPEC = -1
AVAHI_PROTO_UNSPEC = -1
AVAHI_PROTO_INET = 0


@dataclass
class DiscoveredGateway:
    # Ready-to-use HTTP base URL, e.g. "http://10.0.0.5:3000"
    url: str
    host: str
    port: int


def _is_preferred(address: str) -> bool:
    """Non-loopback, non-link-local IPv4 addresses are preferred."""
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return ip.version == 4 and not ip.is_loopback and not ip.is_link_local


def _gateway_url(host: str, port: int) -> str:
    if ":" in host:
        return f"http://[{host}]:{port}"
    return f"http://{host}:{port}"


async def _avahi_call(bus: MessageBus, path: str, interface: str, member: str,
                      signature: str = "", body: list | None = None) -> Message:
    reply = await bus.call(
        Message(
            destination=AVAHI_SERVICE,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=body or [],
        )
    )
    if reply.message_type == MessageType.ERROR:
        raise DBusError(reply.error_name, reply.body[0] if reply.body else "")
    return reply


async def _resolve(bus: MessageBus, item: list) -> tuple[str, int] | None:
    """Resolve one ItemNew entry to (address, port)."""
    interface, protocol, name, stype, domain, _flags = item
    for aprotocol in (AVAHI_PROTO_INET, AVAHI_PROTO_UNSPEC):
        try:
            reply = await _avahi_call(
                bus, "/", AVAHI_SERVER_INTERFACE, "ResolveService", "iisssiu",
                [interface, protocol, name, stype, domain, aprotocol, 0],
            )
        except DBusError as e:
            logger.debug("Resolve of %s failed (aprotocol=%d): %s", name, aprotocol, e)
            continue
        # (interface, protocol, name, type, domain, host, aprotocol, address, port, txt, flags)
        return reply.body[7], int(reply.body[8])
    return None


async def _browse(bus: MessageBus, timeout: float) -> DiscoveredGateway | None:
    items: asyncio.Queue = asyncio.Queue()

    def _on_message(msg: Message) -> bool:
        if (
            msg.message_type == MessageType.SIGNAL
            and msg.interface == AVAHI_BROWSER_INTERFACE
            and msg.member == "ItemNew"
        ):
            items.put_nowait((msg.path, msg.body))
        return False  # don't consume

    bus.add_message_handler(_on_message)
    await bus.call(
        Message(
            destination="org.freedesktop.DBus",
            path="/org/freedesktop/DBus",
            interface="org.freedesktop.DBus",
            member="AddMatch",
            signature="s",
            body=[f"type='signal',sender='{AVAHI_SERVICE}',interface='{AVAHI_BROWSER_INTERFACE}'"],
        )
    )

    reply = await _avahi_call(
        bus, "/", AVAHI_SERVER_INTERFACE, "ServiceBrowserNew", "iissu",
        [AVAHI_IF_UNSPEC, AVAHI_PROTO_UNSPEC, SERVICE_TYPE, SERVICE_DOMAIN, 0],
    )
    browser_path = reply.body[0]
    logger.debug("Avahi browser %s started for %s", browser_path, SERVICE_TYPE)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    fallback: DiscoveredGateway | None = None
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return fallback
            try:
                path, body = await asyncio.wait_for(items.get(), timeout=remaining)
            except asyncio.TimeoutError:
                return fallback
            if path != browser_path:
                continue
            resolved = await _resolve(bus, body)
            if resolved is None:
                continue
            host, port = resolved
            found = DiscoveredGateway(url=_gateway_url(host, port), host=host, port=port)
            if _is_preferred(host):
                return found
            if fallback is None and not ipaddress.ip_address(host.split("%", 1)[0]).is_loopback:
                fallback = found
    finally:
        try:
            await _avahi_call(bus, browser_path, AVAHI_BROWSER_INTERFACE, "Free")
        except DBusError as e:
            logger.debug("Freeing Avahi browser failed: %s", e)
        bus.remove_message_handler(_on_message)


async def discover_gateway(timeout: float = 5.0) -> DiscoveredGateway | None:
    """Scan the LAN for a gateway; returns None if nothing answers in time."""
    try:
        bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
    except (DBusError, OSError, EOFError) as e:
        logger.warning("System D-Bus unavailable, cannot discover gateway: %s", e)
        return None

    try:
        found = await _browse(bus, timeout)
    except (DBusError, ValueError) as e:
        logger.warning("mDNS browse via Avahi failed: %s", e)
        found = None
    finally:
        bus.disconnect()

    if found:
        logger.info("Gateway discovered at %s", found.url)
    return found
