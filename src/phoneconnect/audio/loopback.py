"""pw-loopback bridges that hold the Bluetooth SCO voice channel open.

Switching a card to a headset profile does not open the SCO socket by
itself: PipeWire only opens it while a stream is running on the HFP source
or sink.  Two loopbacks keep both directions alive for the whole call:

- mic bridge: captures from ``bluez_input.<MAC>`` and plays to the default
  output, so the local user hears the remote party (SCO inbound path).
- speaker bridge: captures from the default input and plays into
  ``bluez_output.<MAC>``, so the remote party hears the local user
  (SCO outbound path).
"""

import asyncio
import logging
from dataclasses import dataclass

from ..errors import BridgeSpawnFailed

logger = logging.getLogger(__name__)

LOOPBACK_BINARY = "pw-loopback"
MIC_BRIDGE_NAME = "phoneconnect-hfp-mic"
SPEAKER_BRIDGE_NAME = "phoneconnect-hfp-speaker"
STOP_TIMEOUT = 2.0  # seconds to wait after SIGTERM before SIGKILL

# media.role=Phone makes the audio server treat the streams as call audio.
_VOICE_PROPS = "audio.channels=1 audio.position=[MONO] media.role=Phone"
_ROLE_PROPS = "media.role=Phone"


def mic_bridge_args(source: str) -> list[str]:
    """Arguments for the bridge from the HFP source to the default output."""
    return [
        "--name", MIC_BRIDGE_NAME,
        "--capture", source,
        "--capture-props", _VOICE_PROPS,
        "--playback-props", f"{_ROLE_PROPS} node.description=PhoneConnect-call-audio",
    ]


def speaker_bridge_args(sink: str) -> list[str]:
    """Arguments for the bridge from the default input to the HFP sink."""
    return [
        "--name", SPEAKER_BRIDGE_NAME,
        "--playback", sink,
        "--playback-props", f"{_VOICE_PROPS} node.description=PhoneConnect-call-mic",
        "--capture-props", _ROLE_PROPS,
    ]


@dataclass
class BridgeHandle:
    """A running loopback process."""

    name: str
    process: asyncio.subprocess.Process


class BridgeLauncher:
    """Starts loopback processes."""

    def __init__(self, binary: str = LOOPBACK_BINARY):
        self._binary = binary

    async def spawn(self, name: str, args: list[str]) -> asyncio.subprocess.Process:
        """Start one loopback.  Raises OSError if the binary cannot run."""
        process = await asyncio.create_subprocess_exec(
            self._binary, *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.info("Started %s (pid %s)", name, process.pid)
        return process


class LoopbackBridgePair:
    """Starts and stops the two call-audio bridges as a unit."""

    def __init__(self, launcher: BridgeLauncher):
        self._launcher = launcher

    async def start(self, source: str, sink: str) -> tuple[BridgeHandle, BridgeHandle]:
        """Start the mic bridge, then the speaker bridge.

        Raises BridgeSpawnFailed naming the bridge that failed.  If the
        speaker bridge fails or its start is cancelled, the mic bridge is
        stopped first.
        """
        try:
            mic = BridgeHandle(
                MIC_BRIDGE_NAME,
                await self._launcher.spawn(MIC_BRIDGE_NAME, mic_bridge_args(source)),
            )
        except OSError as e:
            raise BridgeSpawnFailed("mic", str(e)) from e

        try:
            speaker = BridgeHandle(
                SPEAKER_BRIDGE_NAME,
                await self._launcher.spawn(SPEAKER_BRIDGE_NAME, speaker_bridge_args(sink)),
            )
        except OSError as e:
            await self._stop_one(mic)
            raise BridgeSpawnFailed("speaker", str(e)) from e
        except BaseException:
            # Cancelled mid-spawn: the caller never gets the mic handle.
            await self._stop_one(mic)
            raise

        return mic, speaker

    async def stop(self, handles: tuple[BridgeHandle, BridgeHandle]) -> None:
        """Terminate both bridges and wait for them to exit.  Never raises."""
        for handle in handles:
            await self._stop_one(handle)

    @staticmethod
    async def _stop_one(handle: BridgeHandle) -> None:
        process = handle.process
        try:
            if process.returncode is None:
                try:
                    process.terminate()
                except ProcessLookupError:
                    pass
                try:
                    await asyncio.wait_for(process.wait(), timeout=STOP_TIMEOUT)
                except asyncio.TimeoutError:
                    logger.warning("%s ignored SIGTERM, killing", handle.name)
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    await process.wait()
            logger.info("Stopped %s (exit %s)", handle.name, process.returncode)
        except Exception as e:
            logger.warning("Error stopping %s: %s", handle.name, e)
