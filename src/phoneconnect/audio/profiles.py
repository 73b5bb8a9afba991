"""Card profile switching between A2DP (music) and HFP (call audio).

Audio servers disagree on HFP profile names:

    PipeWire:   headset-head-unit (mSBC)       + headset-head-unit-cvsd (CVSD)
    PulseAudio: headset-head-unit-msbc (mSBC)  + headset-head-unit (CVSD)

The family is told apart by the presence of an explicit ``-cvsd`` profile.
Phones paired as audio sources expose ``audio-gateway`` instead.
"""

import enum
import logging

from ..errors import NoMusicProfile, NoTelephonyProfile
from .pulse import PulseAudioManager

logger = logging.getLogger(__name__)

HEADSET_PREFIX = "headset-head-unit"
CVSD_PROFILE = "headset-head-unit-cvsd"
MSBC_PROFILE = "headset-head-unit-msbc"
GATEWAY_PROFILE = "audio-gateway"

# Tried in order when restoring music playback.
MUSIC_PROFILES = (
    "a2dp-sink",
    "a2dp-sink-aac",
    "a2dp-sink-sbc_xq",
    "a2dp-sink-sbc",
)


class TelephonyCodec(enum.Enum):
    """Which HFP mode a profile switch achieved."""

    WIDEBAND = "msbc"
    NARROWBAND = "cvsd"
    REMOTE_GATEWAY = "gateway"

    @property
    def label(self) -> str:
        return _CODEC_LABELS[self]


_CODEC_LABELS = {
    TelephonyCodec.WIDEBAND: "mSBC (16 kHz wideband)",
    TelephonyCodec.NARROWBAND: "CVSD (8 kHz narrowband)",
    TelephonyCodec.REMOTE_GATEWAY: "Audio Gateway (phone HFP mode)",
}


def headset_profile_names(profiles) -> tuple[str, str]:
    """Return (wideband, narrowband) profile names for the detected family."""
    if CVSD_PROFILE in profiles:
        return HEADSET_PREFIX, CVSD_PROFILE  # PipeWire
    return MSBC_PROFILE, HEADSET_PREFIX  # PulseAudio


class ProfileSwitcher:
    """Moves a Bluetooth card between telephony and music profiles."""

    def __init__(self, pulse: PulseAudioManager):
        self._pulse = pulse

    async def available_profiles(self, card_name: str) -> set[str]:
        """Profiles the card currently advertises (empty if unknown)."""
        return set(await self._pulse.card_profiles(card_name))

    async def switch_to_telephony(self, card_name: str) -> TelephonyCodec:
        """Switch the card to the best HFP profile it supports.

        Raises NoTelephonyProfile, listing what was available, if no
        headset or gateway profile could be set.
        """
        profiles = await self._pulse.card_profiles(card_name)

        if any(p.startswith(HEADSET_PREFIX) for p in profiles):
            wideband, narrowband = headset_profile_names(profiles)
            if await self._pulse.set_card_profile(card_name, wideband):
                return TelephonyCodec.WIDEBAND
            if await self._pulse.set_card_profile(card_name, narrowband):
                return TelephonyCodec.NARROWBAND

        if GATEWAY_PROFILE in profiles:
            if await self._pulse.set_card_profile(card_name, GATEWAY_PROFILE):
                return TelephonyCodec.REMOTE_GATEWAY

        logger.warning(
            "No HFP profile could be set on %s (available: %s)",
            card_name, ", ".join(profiles) or "none",
        )
        raise NoTelephonyProfile(card_name, profiles)

    async def switch_to_music(self, card_name: str) -> None:
        """Switch the card back to the best available A2DP profile.

        When profile enumeration yields nothing, every candidate is tried
        anyway.  Raises NoMusicProfile if none could be set.
        """
        profiles = await self._pulse.card_profiles(card_name)
        for candidate in MUSIC_PROFILES:
            if profiles and candidate not in profiles:
                continue
            if await self._pulse.set_card_profile(card_name, candidate):
                return
        raise NoMusicProfile(card_name, profiles)
