"""PulseAudio / PipeWire-pulse access for Bluetooth cards and HFP nodes.

When BlueZ connects a headset or phone, the audio server creates a card
named like ``bluez_card.XX_XX_XX_XX_XX_XX``.  Switching that card to a
headset profile makes PipeWire expose two voice nodes:

    bluez_input.XX:XX:XX:XX:XX:XX   (source: headset mic / phone earpiece)
    bluez_output.XX:XX:XX:XX:XX:XX  (sink: headset speaker / phone mic path)

Card listing and profile switching shell out to ``pactl`` (exit status is
the only reliable success signal for ``set-card-profile``); node presence
and state come from pulsectl_asyncio.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field

from pulsectl_asyncio import PulseAsync

logger = logging.getLogger(__name__)

CARD_PREFIX = "bluez_card."
SOURCE_PREFIX = "bluez_input."
SINK_PREFIX = "bluez_output."

# pactl localises its section headers; the parser expects the C locale.
_PACTL_ENV = {**os.environ, "LC_ALL": "C"}


def mac_to_card_name(mac: str) -> str:
    """Convert ``XX:XX:XX:XX:XX:XX`` (or ``XX_XX_...``) to a card name."""
    return CARD_PREFIX + mac.replace(":", "_").upper()


def card_name_to_mac(card_name: str) -> str:
    """Convert ``bluez_card.XX_XX_...`` back to ``XX:XX:...``."""
    if card_name.startswith(CARD_PREFIX):
        card_name = card_name[len(CARD_PREFIX):]
    return card_name.replace("_", ":")


def voice_node_names(card_name: str) -> tuple[str, str]:
    """Return the (source, sink) node names an HFP profile creates for a card."""
    mac = card_name_to_mac(card_name)
    return f"{SOURCE_PREFIX}{mac}", f"{SINK_PREFIX}{mac}"


def _state_name(obj) -> str:
    """Extract a lowercase state name from a pulsectl sink/source."""
    state_name = getattr(obj.state, "name", None)
    if state_name is None:
        # Fallback: parse "<EnumValue sink/source-state=idle>"
        raw = str(obj.state)
        state_name = raw.split("=")[-1].rstrip(">") if "=" in raw else raw
    return state_name.lower()


@dataclass
class CardInfo:
    """One card as reported by ``pactl list cards``."""

    index: int | None
    name: str
    profiles: list[str] = field(default_factory=list)
    active_profile: str | None = None
    description: str | None = None


def parse_cards(text: str) -> list[CardInfo]:
    """Parse the verbose output of ``pactl list cards``."""
    cards: list[CardInfo] = []
    current: CardInfo | None = None
    in_profiles = False

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("Card #"):
            try:
                index = int(stripped[len("Card #"):])
            except ValueError:
                index = None
            current = CardInfo(index=index, name="")
            cards.append(current)
            in_profiles = False
            continue
        if current is None or not stripped:
            continue

        if stripped.startswith("Name:") and not current.name:
            current.name = stripped.split(":", 1)[1].strip()
        elif stripped.startswith("device.description =") and current.description is None:
            current.description = stripped.split("=", 1)[1].strip().strip('"') or None
        elif stripped == "Profiles:":
            in_profiles = True
        elif stripped.startswith("Active Profile:"):
            in_profiles = False
            current.active_profile = stripped.split(":", 1)[1].strip() or None
        elif in_profiles:
            # e.g. "a2dp-sink: High Fidelity Playback (A2DP Sink) (sinks: 1, ...)"
            # ALSA profile names contain colons themselves ("output:analog-stereo")
            name = stripped.split(": ", 1)[0].strip()
            if name:
                current.profiles.append(name)

    return [card for card in cards if card.name]


class PulseAudioManager:
    """Queries and controls Bluetooth cards on the local audio server."""

    def __init__(self, client_name: str = "phoneconnect"):
        self._client_name = client_name
        self._pulse: PulseAsync | None = None

    async def connect(self) -> None:
        """Connect to the audio server (honours PULSE_SERVER)."""
        if self._pulse:
            return
        pulse = PulseAsync(self._client_name)
        try:
            await pulse.connect()
        except Exception as e:
            pulse.close()
            raise ConnectionError(f"PulseAudio not reachable: {e}") from e
        self._pulse = pulse
        logger.debug("Connected to PulseAudio as %s", self._client_name)

    async def disconnect(self) -> None:
        """Disconnect from the audio server."""
        if self._pulse:
            self._pulse.close()
            self._pulse = None

    async def _pactl(self, *args: str) -> tuple[int | None, str, str]:
        """Run pactl; returns (returncode, stdout, stderr).

        returncode is None when pactl itself could not be started.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                "pactl", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=_PACTL_ENV,
            )
            stdout, stderr = await proc.communicate()
        except (FileNotFoundError, OSError) as exc:
            logger.debug("pactl not available: %s", exc)
            return None, "", str(exc)
        return (
            proc.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace").strip(),
        )

    async def list_cards(self) -> list[CardInfo]:
        """List all cards with their profiles.  Empty on any pactl failure."""
        returncode, stdout, stderr = await self._pactl("list", "cards")
        if returncode != 0:
            if returncode is not None:
                logger.debug("pactl list cards failed: %s", stderr)
            return []
        return parse_cards(stdout)

    async def card_profiles(self, card_name: str) -> list[str]:
        """List the profiles advertised by a card.  Empty if the card is unknown."""
        for card in await self.list_cards():
            if card.name == card_name:
                return list(card.profiles)
        return []

    async def set_card_profile(self, card_name: str, profile: str) -> bool:
        """Ask the audio server to switch a card profile.  True on success."""
        returncode, _, stderr = await self._pactl("set-card-profile", card_name, profile)
        if returncode == 0:
            logger.info("PA card profile set: %s -> %s", card_name, profile)
            return True
        logger.debug("set-card-profile %s %s failed: %s", card_name, profile, stderr)
        return False

    async def node_states(self, kind: str) -> dict[str, str]:
        """Return ``{node name: state}`` for all sources or sinks.

        *kind* is ``"source"`` or ``"sink"``.  Returns an empty dict when the
        audio server cannot be queried.
        """
        try:
            await self.connect()
            if kind == "source":
                nodes = await self._pulse.source_list()
            else:
                nodes = await self._pulse.sink_list()
        except Exception as e:
            logger.debug("PA %s list failed: %s", kind, e)
            await self.disconnect()
            return {}
        return {node.name: _state_name(node) for node in nodes}

    async def has_node(self, kind: str, name: str) -> bool:
        """True if a source/sink whose name contains *name* exists."""
        states = await self.node_states(kind)
        return any(name in node for node in states)

    async def node_is_running(self, kind: str, name: str) -> bool:
        """True if a matching source/sink exists and is not suspended."""
        states = await self.node_states(kind)
        return any(
            name in node and state != "suspended"
            for node, state in states.items()
        )
