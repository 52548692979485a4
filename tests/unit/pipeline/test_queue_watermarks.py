"""
Unit tests for BoundedQueue watermarks and overflow strategies.
"""

import asyncio
import pytest

from monit_forwarder.pipeline import BoundedQueue, QueueFullError


@pytest.mark.asyncio
async def test_watermark_signals_fire_once_and_recover():
    """Test that watermark signals fire once and recover properly."""
    high_called = 0
    low_called = 0

    async def on_high():
        nonlocal high_called
        high_called += 1

    async def on_low():
        nonlocal low_called
        low_called += 1

    q = BoundedQueue[int](
        capacity=10,
        high_watermark=8,
        low_watermark=4,
        on_high=on_high,
        on_low=on_low,
    )

    for i in range(8):
        await q.put(i)
    assert q.size == 8
    assert high_called == 1

    for _ in range(5):  # size 8 -> 3
        await q.get()
    assert low_called == 1

    for i in range(4):  # size 3 -> 7
        await q.put(100 + i)
    assert high_called == 1

    await q.put(999)  # size 8 crosses again
    assert high_called == 2


@pytest.mark.asyncio
async def test_drop_oldest_counts_drops():
    dropped = []

    async def on_drop(item: int):
        dropped.append(item)

    q = BoundedQueue[int](
        capacity=5,
        name="samples",
        overflow_strategy="drop_oldest",
        drop_callback=on_drop,
    )
    for i in range(5):
        await q.put(i)

    await q.put(99)
    await q.put(100)
    assert q.size == 5
    assert q.dropped == 2
    assert dropped == [0, 1]

    items = [await q.get() for _ in range(5)]
    assert items == [2, 3, 4, 99, 100]


@pytest.mark.asyncio
async def test_error_strategy():
    q = BoundedQueue[int](capacity=3, overflow_strategy="error")
    for i in range(3):
        await q.put(i)
    with pytest.raises(QueueFullError):
        await q.put(999)


@pytest.mark.asyncio
async def test_block_strategy_waits_for_consumer():
    q = BoundedQueue[int](capacity=1)
    await q.put(1)

    producer = asyncio.create_task(q.put(2))
    await asyncio.sleep(0.02)
    assert not producer.done()

    assert await q.get() == 1
    await asyncio.wait_for(producer, 1.0)
    assert await q.get() == 2


@pytest.mark.asyncio
async def test_get_timeout():
    q = BoundedQueue[int](capacity=1)
    with pytest.raises(asyncio.TimeoutError):
        await q.get(timeout=0.01)
    assert q.size == 0


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        BoundedQueue[int](capacity=0)
