"""Enumeration of Bluetooth audio cards known to the audio server."""

import logging
from dataclasses import dataclass

from ..bluez.device import BluezNameResolver
from .pulse import CARD_PREFIX, PulseAudioManager, card_name_to_mac

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioEndpoint:
    """Snapshot of one Bluetooth audio card."""

    # Full card name, e.g. "bluez_card.AA_BB_CC_DD_EE_FF"
    name: str
    # Human-readable MAC, e.g. "AA:BB:CC:DD:EE:FF"
    address: str
    display_name: str | None = None
    active_profile: str | None = None


class DeviceInventory:
    """Lists Bluetooth cards with their active profile and friendly name."""

    def __init__(self, pulse: PulseAudioManager, names: BluezNameResolver):
        self._pulse = pulse
        self._names = names

    async def list(self) -> list[AudioEndpoint]:
        """Return all Bluetooth cards, or an empty list if none can be read."""
        cards = [c for c in await self._pulse.list_cards() if c.name.startswith(CARD_PREFIX)]
        if not cards:
            return []

        try:
            names = await self._names.friendly_names()
        except Exception as e:
            logger.debug("Friendly name lookup failed: %s", e)
            names = {}

        endpoints = []
        for card in cards:
            address = card_name_to_mac(card.name)
            endpoints.append(
                AudioEndpoint(
                    name=card.name,
                    address=address,
                    display_name=names.get(address.upper()) or card.description,
                    active_profile=card.active_profile,
                )
            )
        logger.debug("Found %d Bluetooth card(s)", len(endpoints))
        return endpoints
