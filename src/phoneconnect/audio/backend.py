"""Platform-specific call-audio backends.

Linux drives PipeWire / PulseAudio directly.  On Windows and macOS the OS
switches profiles and opens SCO by itself once the headset is the default
communications device, so the backend there only explains how.
"""

import abc
import contextlib
import logging
import sys
from collections.abc import AsyncIterator

from ..bluez.device import BluezNameResolver
from ..errors import PlatformUnsupported
from .autoswitch import WirePlumberSettings
from .inventory import AudioEndpoint, DeviceInventory
from .loopback import BridgeLauncher, LoopbackBridgePair
from .profiles import ProfileSwitcher, TelephonyCodec
from .pulse import PulseAudioManager
from .session import HfpActivator, HfpSession
from .watcher import NodeWatcher

logger = logging.getLogger(__name__)

UNSUPPORTED_ACTIVATION_MESSAGE = (
    "Automatic BT HFP / SCO activation via pw-loopback is Linux-only.\n"
    "On Windows: set the headset as Default Communications Device in Sound settings.\n"
    "On macOS:   select the headset as input/output in System Settings -> Sound."
)
UNSUPPORTED_SWITCH_MESSAGE = (
    "Automatic BT profile switching is Linux-only.\n"
    "On Windows / macOS, set the headset as the default communications device."
)


class CallAudioBackend(abc.ABC):
    """Operations the CLI uses to manage Bluetooth call audio."""

    @abc.abstractmethod
    async def list_endpoints(self) -> list[AudioEndpoint]:
        """List Bluetooth audio endpoints (empty when none can be seen)."""

    @abc.abstractmethod
    async def activate(self, card_name: str) -> HfpSession:
        """Switch to HFP and open the voice channel."""

    @abc.abstractmethod
    async def switch_to_telephony_only(self, card_name: str) -> TelephonyCodec:
        """Switch the profile to HFP without opening the voice channel."""

    @abc.abstractmethod
    async def switch_to_music(self, card_name: str) -> None:
        """Switch the card back to A2DP."""

    async def release(self, session: HfpSession) -> None:
        await session.release()

    @contextlib.asynccontextmanager
    async def session(self, card_name: str) -> AsyncIterator[HfpSession]:
        """Activate call audio for the duration of an ``async with`` block."""
        session = await self.activate(card_name)
        try:
            yield session
        finally:
            await self.release(session)

    async def close(self) -> None:
        """Release connections held by the backend."""

    async def __aenter__(self) -> "CallAudioBackend":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class LinuxCallAudio(CallAudioBackend):
    """PipeWire / PulseAudio implementation."""

    def __init__(
        self,
        pulse: PulseAudioManager | None = None,
        names: BluezNameResolver | None = None,
        settings: WirePlumberSettings | None = None,
        launcher: BridgeLauncher | None = None,
        watcher: NodeWatcher | None = None,
    ):
        self.pulse = pulse or PulseAudioManager()
        self.inventory = DeviceInventory(self.pulse, names or BluezNameResolver())
        self.switcher = ProfileSwitcher(self.pulse)
        self.activator = HfpActivator(
            self.switcher,
            settings or WirePlumberSettings(),
            watcher or NodeWatcher(self.pulse),
            LoopbackBridgePair(launcher or BridgeLauncher()),
        )

    async def list_endpoints(self) -> list[AudioEndpoint]:
        return await self.inventory.list()

    async def activate(self, card_name: str) -> HfpSession:
        return await self.activator.activate(card_name)

    async def switch_to_telephony_only(self, card_name: str) -> TelephonyCodec:
        return await self.switcher.switch_to_telephony(card_name)

    async def switch_to_music(self, card_name: str) -> None:
        await self.switcher.switch_to_music(card_name)

    async def close(self) -> None:
        await self.pulse.disconnect()


class UnsupportedCallAudio(CallAudioBackend):
    """Backend for platforms where the OS manages call audio itself."""

    async def list_endpoints(self) -> list[AudioEndpoint]:
        return []

    async def activate(self, card_name: str) -> HfpSession:
        raise PlatformUnsupported(UNSUPPORTED_ACTIVATION_MESSAGE)

    async def switch_to_telephony_only(self, card_name: str) -> TelephonyCodec:
        raise PlatformUnsupported(UNSUPPORTED_SWITCH_MESSAGE)

    async def switch_to_music(self, card_name: str) -> None:
        raise PlatformUnsupported(UNSUPPORTED_SWITCH_MESSAGE)


def create_backend(platform: str | None = None) -> CallAudioBackend:
    """Pick the call-audio backend for the running platform."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return LinuxCallAudio()
    logger.debug("No call-audio backend for %s", platform)
    return UnsupportedCallAudio()
