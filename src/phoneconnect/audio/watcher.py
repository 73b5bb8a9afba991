"""Bounded polling for the voice nodes an HFP profile switch creates."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from ..errors import NodeTimeout
from .pulse import PulseAudioManager, voice_node_names

logger = logging.getLogger(__name__)

NODE_TIMEOUT = 4.0  # seconds
POLL_INTERVAL = 0.2  # seconds


async def wait_for(
    predicate: Callable[[], bool | Awaitable[bool]],
    timeout: float = NODE_TIMEOUT,
    interval: float = POLL_INTERVAL,
) -> bool:
    """Poll *predicate* until it holds or *timeout* elapses.

    Returns True as soon as the predicate is true, False once the deadline
    has passed.  Sleeps between checks and never overshoots the deadline by
    more than one interval.  A predicate that raises counts as false.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        try:
            result = predicate()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("wait_for predicate raised: %s", e)
            result = False
        if result:
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))


class NodeWatcher:
    """Waits for a card's HFP source/sink to appear and start running."""

    def __init__(
        self,
        pulse: PulseAudioManager,
        timeout: float = NODE_TIMEOUT,
        interval: float = POLL_INTERVAL,
    ):
        self._pulse = pulse
        self._timeout = timeout
        self._interval = interval

    async def _nodes_present(self, source: str, sink: str) -> bool:
        return (
            await self._pulse.has_node("source", source)
            and await self._pulse.has_node("sink", sink)
        )

    async def _nodes_running(self, source: str, sink: str) -> bool:
        return (
            await self._pulse.node_is_running("source", source)
            and await self._pulse.node_is_running("sink", sink)
        )

    async def wait_for_nodes(self, card_name: str) -> tuple[str, str]:
        """Wait for the HFP source and sink to exist.

        Returns their names; raises NodeTimeout if they do not appear.
        """
        source, sink = voice_node_names(card_name)
        found = await wait_for(
            lambda: self._nodes_present(source, sink),
            self._timeout,
            self._interval,
        )
        if not found:
            raise NodeTimeout(source, sink, self._timeout)
        logger.info("HFP nodes ready: %s / %s", source, sink)
        return source, sink

    async def wait_for_running(self, card_name: str) -> bool:
        """Wait for both HFP nodes to leave the suspended state."""
        source, sink = voice_node_names(card_name)
        return await wait_for(
            lambda: self._nodes_running(source, sink),
            self._timeout,
            self._interval,
        )
