"""Fake audio-server, WirePlumber and loopback collaborators.

Every fake appends to a shared ``events`` list so tests can assert the
order of external operations.
"""

import asyncio

import pytest

from phoneconnect.audio.backend import LinuxCallAudio
from phoneconnect.audio.pulse import CardInfo, voice_node_names
from phoneconnect.audio.watcher import NodeWatcher

MAC = "AA:BB:CC:DD:EE:FF"
CARD = "bluez_card.AA_BB_CC_DD_EE_FF"

PIPEWIRE_PROFILES = [
    "off",
    "a2dp-sink",
    "a2dp-sink-sbc",
    "headset-head-unit-cvsd",
    "headset-head-unit",
]
PULSEAUDIO_PROFILES = ["off", "a2dp-sink", "headset-head-unit-msbc", "headset-head-unit"]
GATEWAY_PROFILES = ["off", "audio-gateway", "a2dp-source"]


class FakePulse:
    """In-memory stand-in for PulseAudioManager."""

    def __init__(self, events: list):
        self.events = events
        self.cards: dict[str, CardInfo] = {}
        self.fail_profiles: set[str] = set()
        self.nodes = {"source": {}, "sink": {}}
        # Switching to a headset profile creates suspended voice nodes.
        self.create_nodes = True

    def add_card(self, name=CARD, profiles=PIPEWIRE_PROFILES, active="a2dp-sink", description=None):
        self.cards[name] = CardInfo(
            index=len(self.cards), name=name, profiles=list(profiles),
            active_profile=active, description=description,
        )

    def set_nodes_state(self, card_name: str, state: str) -> None:
        source, sink = voice_node_names(card_name)
        self.nodes["source"][source] = state
        self.nodes["sink"][sink] = state

    async def list_cards(self):
        return list(self.cards.values())

    async def card_profiles(self, card_name):
        card = self.cards.get(card_name)
        return list(card.profiles) if card else []

    async def set_card_profile(self, card_name, profile):
        self.events.append(("set_profile", profile))
        card = self.cards.get(card_name)
        if card is None or profile not in card.profiles or profile in self.fail_profiles:
            return False
        card.active_profile = profile
        if profile.startswith("headset-head-unit") and self.create_nodes:
            self.set_nodes_state(card_name, "suspended")
        if profile.startswith("a2dp"):
            source, sink = voice_node_names(card_name)
            self.nodes["source"].pop(source, None)
            self.nodes["sink"].pop(sink, None)
        return True

    async def node_states(self, kind):
        return dict(self.nodes[kind])

    async def has_node(self, kind, name):
        return any(name in node for node in self.nodes[kind])

    async def node_is_running(self, kind, name):
        return any(
            name in node and state != "suspended"
            for node, state in self.nodes[kind].items()
        )

    async def disconnect(self):
        pass


class FakeSettings:
    """In-memory stand-in for WirePlumberSettings."""

    def __init__(self, events: list, value: bool | None = True):
        self.events = events
        self.value = value
        self.fail = False

    async def get_bool(self, key):
        return None if self.fail else self.value

    async def set_bool(self, key, value):
        self.events.append(("autoswitch", value))
        if self.fail:
            return False
        self.value = value
        return True


class FakeProcess:
    _next_pid = 1000

    def __init__(self, name: str, events: list, ignore_term: bool = False):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.name = name
        self.events = events
        self.returncode = None
        self.ignore_term = ignore_term
        self._exited = asyncio.Event()

    def terminate(self):
        self.events.append(("terminate", self.name))
        if not self.ignore_term:
            self._exit(-15)

    def kill(self):
        self.events.append(("kill", self.name))
        self._exit(-9)

    def _exit(self, code):
        if self.returncode is None:
            self.returncode = code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class FakeLauncher:
    """Stand-in for BridgeLauncher that records spawns."""

    def __init__(self, events: list, pulse: FakePulse | None = None):
        self.events = events
        self.pulse = pulse
        self.fail: set[str] = set()
        self.processes: dict[str, FakeProcess] = {}
        self.args: dict[str, list[str]] = {}
        # When set, both voice nodes go to "running" once both bridges exist.
        self.start_nodes = True

    async def spawn(self, name, args):
        self.events.append(("spawn", name))
        if name in self.fail:
            raise FileNotFoundError(2, "No such file or directory", "pw-loopback")
        process = FakeProcess(name, self.events)
        self.processes[name] = process
        self.args[name] = list(args)
        if self.pulse is not None and self.start_nodes and len(self.processes) == 2:
            for kind in ("source", "sink"):
                for node in self.pulse.nodes[kind]:
                    self.pulse.nodes[kind][node] = "running"
        return process


class FakeNames:
    def __init__(self, names=None, fail=False):
        self.names = names or {}
        self.fail = fail

    async def friendly_names(self):
        if self.fail:
            raise OSError("no system bus")
        return dict(self.names)


@pytest.fixture
def events():
    return []


@pytest.fixture
def pulse(events):
    return FakePulse(events)


@pytest.fixture
def settings(events):
    return FakeSettings(events)


@pytest.fixture
def launcher(events, pulse):
    return FakeLauncher(events, pulse)


@pytest.fixture
def backend(pulse, settings, launcher):
    return LinuxCallAudio(
        pulse=pulse,
        names=FakeNames({MAC: "Pixel 8"}),
        settings=settings,
        launcher=launcher,
        watcher=NodeWatcher(pulse, timeout=0.3, interval=0.05),
    )
