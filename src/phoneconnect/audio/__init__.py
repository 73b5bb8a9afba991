"""Bluetooth call audio: HFP profile switching and SCO loopback sessions."""

from .backend import CallAudioBackend, LinuxCallAudio, UnsupportedCallAudio, create_backend
from .inventory import AudioEndpoint, DeviceInventory
from .profiles import ProfileSwitcher, TelephonyCodec
from .pulse import PulseAudioManager, card_name_to_mac, mac_to_card_name
from .session import HfpActivator, HfpSession, SessionState

__all__ = [
    "AudioEndpoint",
    "CallAudioBackend",
    "DeviceInventory",
    "HfpActivator",
    "HfpSession",
    "LinuxCallAudio",
    "ProfileSwitcher",
    "PulseAudioManager",
    "SessionState",
    "TelephonyCodec",
    "UnsupportedCallAudio",
    "card_name_to_mac",
    "create_backend",
    "mac_to_card_name",
]
