from __future__ import annotations

import asyncio
from typing import Generic, Optional, Literal, Awaitable, Callable

from loguru import logger

from ..metrics import QUEUE_DEPTH, QUEUE_DROPPED_TOTAL
from .types import BackpressureCallback, QueueFullError, T

OverflowStrategy = Literal["block", "drop_oldest", "error"]


class BoundedQueue(Generic[T]):
    """Bounded hand-off queue between pipeline stages.

    Overflow policy:
      - block: producer awaits until a consumer makes room (default)
      - drop_oldest: evict the head, count it, then enqueue
      - error: raise QueueFullError
    High/low watermark callbacks fire once per crossing.
    """

    def __init__(
        self,
        capacity: int,
        high_watermark: int | None = None,
        low_watermark: int | None = None,
        *,
        name: str = "queue",
        overflow_strategy: OverflowStrategy = "block",
        on_high: Optional[BackpressureCallback] = None,
        on_low: Optional[BackpressureCallback] = None,
        drop_callback: Optional[Callable[[T], Awaitable[None]]] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._name = name
        self._q: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)
        self._size = 0  # mirrored for watermark checks
        self._dropped = 0

        self._high_wm = (
            high_watermark if high_watermark is not None else max(1, int(0.8 * capacity))
        )
        self._low_wm = low_watermark if low_watermark is not None else int(0.5 * capacity)
        self._overflow = overflow_strategy
        self._on_high = on_high
        self._on_low = on_low
        self._drop_cb = drop_callback

        self._high_fired = False  # avoid duplicate signals

        # Protect _size & signals across concurrent producers/consumers
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._size

    @property
    def dropped(self) -> int:
        return self._dropped

    async def put(self, item: T) -> None:
        """Put item according to overflow policy; emits high watermark once."""
        if self._overflow == "error" and self._q.full():
            raise QueueFullError(f"{self._name} is full ({self._capacity})")

        if self._overflow == "drop_oldest" and self._q.full():
            oldest = self._q.get_nowait()
            async with self._lock:
                self._size -= 1
                self._dropped += 1
            QUEUE_DROPPED_TOTAL.labels(queue=self._name).inc()
            if self._dropped == 1 or self._dropped % 1000 == 0:
                logger.warning(f"{self._name}: full, dropped oldest item (total {self._dropped})")
            if self._drop_cb:
                await self._drop_cb(oldest)

        await self._q.put(item)
        async with self._lock:
            self._size += 1
            QUEUE_DEPTH.labels(queue=self._name).set(self._size)
            await self._maybe_signal_high()

    async def get(self, timeout: float | None = None) -> T:
        """Get item with optional timeout; emits low-watermark when recovering.

        Raises asyncio.TimeoutError when `timeout` elapses with nothing queued.
        """
        if timeout is None:
            item = await self._q.get()
        else:
            item = await asyncio.wait_for(self._q.get(), timeout=timeout)

        async with self._lock:
            self._size -= 1
            QUEUE_DEPTH.labels(queue=self._name).set(self._size)
            await self._maybe_signal_low()
        return item

    async def _maybe_signal_high(self) -> None:
        if not self._high_fired and self._size >= self._high_wm:
            self._high_fired = True
            if self._on_high:
                await self._on_high()

    async def _maybe_signal_low(self) -> None:
        if self._high_fired and self._size <= self._low_wm:
            self._high_fired = False
            if self._on_low:
                await self._on_low()
