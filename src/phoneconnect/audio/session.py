"""HFP call-audio sessions: activation and guaranteed teardown.

Activation steps:

1. Suspend WirePlumber's autoswitch policy so it cannot revert the
   profile before the loopbacks attach.
2. Switch the card to the best HFP profile.
3. Wait (up to 4 s) for the ``bluez_input`` / ``bluez_output`` nodes.
4. Start the mic and speaker loopbacks.
5. Wait (up to 4 s, non-fatal) for both nodes to start running.

A card in audio-gateway mode (a phone) skips steps 3-5: the phone owns the
audio path and no local SCO channel is opened.

Release stops the loopbacks, gives the audio server a moment to drop their
streams, restores the A2DP profile and resumes the autoswitch policy.  Any
failure during activation releases whatever was acquired before the error
propagates.
"""

import asyncio
import contextlib
import enum
import logging
from collections.abc import AsyncIterator

from .autoswitch import AutoswitchPolicyGuard, WirePlumberSettings
from .loopback import BridgeHandle, LoopbackBridgePair
from .profiles import ProfileSwitcher, TelephonyCodec
from .watcher import NodeWatcher

logger = logging.getLogger(__name__)

# Pause between killing the loopbacks and changing the profile, so the audio
# server has deregistered their streams and accepts the profile change.
SETTLE_DELAY = 0.2  # seconds


class SessionState(enum.Enum):
    IDLE = "idle"
    ACTIVATING = "activating"
    ACTIVE = "active"
    TEARING_DOWN = "tearing_down"
    RELEASED = "released"


class HfpSession:
    """A live HFP call-audio session for one card.

    Owns the two loopback processes (none for audio-gateway cards).  Use as
    an async context manager, or call release() on every exit path.
    """

    def __init__(
        self,
        card_name: str,
        switcher: ProfileSwitcher,
        guard: AutoswitchPolicyGuard,
        watcher: NodeWatcher,
        bridge_pair: LoopbackBridgePair,
    ):
        self.card_name = card_name
        self.codec: TelephonyCodec | None = None
        self.state = SessionState.IDLE
        self._switcher = switcher
        self._guard = guard
        self._watcher = watcher
        self._bridge_pair = bridge_pair
        self._bridges: tuple[BridgeHandle, BridgeHandle] | None = None
        self._profile_switched = False

    @property
    def has_bridges(self) -> bool:
        return self._bridges is not None

    async def activate(self) -> "HfpSession":
        """Run the activation sequence; on failure, release and re-raise."""
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session for {self.card_name} already {self.state.value}")
        self.state = SessionState.ACTIVATING
        try:
            await self._guard.suspend()
            self.codec = await self._switcher.switch_to_telephony(self.card_name)
            self._profile_switched = True
            logger.info("%s switched to HFP: %s", self.card_name, self.codec.label)

            if self.codec is TelephonyCodec.REMOTE_GATEWAY:
                # No capture stream will be held, so the policy can run again.
                await self._guard.resume()
            else:
                await self._open_voice_channel()
        except (Exception, asyncio.CancelledError) as e:
            logger.warning("HFP activation for %s failed: %s", self.card_name, e)
            await self.release()
            raise

        self.state = SessionState.ACTIVE
        return self

    async def _open_voice_channel(self) -> None:
        source, sink = await self._watcher.wait_for_nodes(self.card_name)
        self._bridges = await self._bridge_pair.start(source, sink)
        if not await self._watcher.wait_for_running(self.card_name):
            logger.warning(
                "HFP SCO stream not yet confirmed RUNNING for %s; "
                "call audio may still start within 1-2 s",
                self.card_name,
            )

    async def release(self) -> None:
        """Tear the session down.  Safe to call more than once."""
        if self.state in (SessionState.TEARING_DOWN, SessionState.RELEASED):
            return
        self.state = SessionState.TEARING_DOWN
        try:
            if self._bridges is not None:
                bridges, self._bridges = self._bridges, None
                await self._bridge_pair.stop(bridges)
                await asyncio.sleep(SETTLE_DELAY)
            # Also runs on rollback: a card left in HFP with no bridges would
            # sit in a headset profile with nothing attached to it.
            if self._profile_switched:
                try:
                    await self._switcher.switch_to_music(self.card_name)
                except Exception as e:
                    logger.warning("Could not restore A2DP on %s: %s", self.card_name, e)
        finally:
            await self._guard.resume()
            self.state = SessionState.RELEASED
            logger.info("HFP session for %s released", self.card_name)

    async def __aenter__(self) -> "HfpSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def __repr__(self) -> str:
        codec = self.codec.name if self.codec else None
        return f"HfpSession({self.card_name}, codec={codec}, state={self.state.value})"


class HfpActivator:
    """Creates HFP sessions from shared audio-server collaborators."""

    def __init__(
        self,
        switcher: ProfileSwitcher,
        settings: WirePlumberSettings,
        watcher: NodeWatcher,
        bridge_pair: LoopbackBridgePair,
    ):
        self._switcher = switcher
        self._settings = settings
        self._watcher = watcher
        self._bridge_pair = bridge_pair

    async def activate(self, card_name: str) -> HfpSession:
        """Switch *card_name* to HFP and open its voice channel."""
        session = HfpSession(
            card_name,
            self._switcher,
            AutoswitchPolicyGuard(self._settings),
            self._watcher,
            self._bridge_pair,
        )
        return await session.activate()

    @contextlib.asynccontextmanager
    async def session(self, card_name: str) -> AsyncIterator[HfpSession]:
        """Scoped activation: the session is released on every exit path."""
        session = await self.activate(card_name)
        try:
            yield session
        finally:
            await session.release()
