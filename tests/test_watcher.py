import asyncio

import pytest

from conftest import CARD
from phoneconnect.audio.watcher import NodeWatcher, wait_for
from phoneconnect.errors import NodeTimeout


# Scheduler slack allowed on top of the documented bounds.
TOLERANCE = 0.05


@pytest.mark.asyncio
async def test_wait_for_returns_on_first_poll_after_predicate_holds():
    loop = asyncio.get_running_loop()
    start = loop.time()

    result = await wait_for(lambda: loop.time() - start >= 0.6, timeout=4.0, interval=0.2)

    elapsed = loop.time() - start
    assert result is True
    assert 0.6 - TOLERANCE <= elapsed <= 0.8 + TOLERANCE


@pytest.mark.asyncio
async def test_wait_for_gives_up_at_deadline():
    loop = asyncio.get_running_loop()
    calls = []
    start = loop.time()

    result = await wait_for(lambda: calls.append(1) and False, timeout=1.0, interval=0.2)

    elapsed = loop.time() - start
    assert result is False
    assert 1.0 - TOLERANCE <= elapsed <= 1.0 + 0.2 + TOLERANCE
    # One immediate check plus one per interval, never a busy loop.
    assert 5 <= len(calls) <= 7


@pytest.mark.asyncio
async def test_wait_for_checks_immediately():
    calls = []

    def predicate():
        calls.append(1)
        return True

    assert await wait_for(predicate, timeout=0.0, interval=0.1) is True
    assert calls == [1]


@pytest.mark.asyncio
async def test_wait_for_accepts_async_predicate():
    state = {"n": 0}

    async def predicate():
        state["n"] += 1
        return state["n"] >= 3

    assert await wait_for(predicate, timeout=1.0, interval=0.01) is True
    assert state["n"] == 3


@pytest.mark.asyncio
async def test_raising_predicate_counts_as_false():
    def predicate():
        raise ConnectionError("audio server gone")

    assert await wait_for(predicate, timeout=0.1, interval=0.02) is False


@pytest.mark.asyncio
async def test_wait_for_nodes_returns_names(pulse):
    pulse.set_nodes_state(CARD, "suspended")
    watcher = NodeWatcher(pulse, timeout=0.2, interval=0.05)

    source, sink = await watcher.wait_for_nodes(CARD)

    assert source == "bluez_input.AA:BB:CC:DD:EE:FF"
    assert sink == "bluez_output.AA:BB:CC:DD:EE:FF"


@pytest.mark.asyncio
async def test_wait_for_nodes_waits_for_late_nodes(pulse):
    watcher = NodeWatcher(pulse, timeout=1.0, interval=0.05)

    async def appear_later():
        await asyncio.sleep(0.15)
        pulse.set_nodes_state(CARD, "suspended")

    task = asyncio.create_task(appear_later())
    await watcher.wait_for_nodes(CARD)
    await task


@pytest.mark.asyncio
async def test_wait_for_nodes_needs_both_directions(pulse):
    pulse.nodes["source"]["bluez_input.AA:BB:CC:DD:EE:FF"] = "suspended"
    watcher = NodeWatcher(pulse, timeout=0.1, interval=0.02)

    with pytest.raises(NodeTimeout) as exc_info:
        await watcher.wait_for_nodes(CARD)

    assert exc_info.value.timeout == 0.1


@pytest.mark.asyncio
async def test_wait_for_running(pulse):
    watcher = NodeWatcher(pulse, timeout=0.1, interval=0.02)
    pulse.set_nodes_state(CARD, "suspended")
    assert await watcher.wait_for_running(CARD) is False

    pulse.set_nodes_state(CARD, "idle")
    assert await watcher.wait_for_running(CARD) is True
