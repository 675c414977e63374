from __future__ import annotations

import asyncio

import pytest

from deltaticks.core.data.ingestion.channel import ChannelClosedError, FlushChannel


@pytest.mark.asyncio
async def test_take_returns_full_batch_then_none_after_close():
    channel: FlushChannel[int] = FlushChannel(3)
    for item in range(3):
        await channel.put(item)

    batch = await channel.take(10)
    channel.release(len(batch))
    channel.close()

    assert batch == [0, 1, 2]
    assert await channel.take(10) is None


@pytest.mark.asyncio
async def test_take_times_out_with_partial_batch():
    channel: FlushChannel[int] = FlushChannel(10)
    assert await channel.take(0.01) == []

    await channel.put(1)
    assert await channel.take(0.01) == [1]
    assert channel.unflushed == 1


@pytest.mark.asyncio
async def test_put_blocks_until_written_items_are_released():
    channel: FlushChannel[int] = FlushChannel(2)
    await channel.put(1)
    await channel.put(2)
    batch = await channel.take(10)

    blocked = asyncio.create_task(channel.put(3))
    await asyncio.sleep(0.01)
    assert not blocked.done()

    channel.release(len(batch))
    await asyncio.wait_for(blocked, 1)
    assert channel.unflushed == 1
    assert channel.peak_unflushed == 2


@pytest.mark.asyncio
async def test_abort_wakes_blocked_producer():
    channel: FlushChannel[int] = FlushChannel(1)
    await channel.put(1)
    blocked = asyncio.create_task(channel.put(2))
    await asyncio.sleep(0.01)

    channel.abort(RuntimeError("store down"))

    with pytest.raises(RuntimeError, match="store down"):
        await asyncio.wait_for(blocked, 1)


@pytest.mark.asyncio
async def test_put_after_close_raises():
    channel: FlushChannel[int] = FlushChannel(1)
    channel.close()

    with pytest.raises(ChannelClosedError):
        await channel.put(1)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        FlushChannel(0)
