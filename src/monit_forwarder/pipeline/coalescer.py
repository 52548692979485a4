"""
Sample coalescer: last-write-wins accumulation with a fixed flush tick.

One task owns the pending map. Incoming samples and the tick are both
handled inside that task's loop, so the map needs no lock.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger

from ..metrics import PENDING_SAMPLES, SAMPLES_COALESCED_TOTAL
from ..models import Sample
from .queue import BoundedQueue


class CoalescerState(str, Enum):
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


class SampleCoalescer:
    """Deduplicates samples by name between flushes and hands drains downstream.

    Args:
        samples: inbound sample queue (sole consumer)
        batches: outbound queue of drained batches, consumed by the sender
        flush_interval: seconds between ticks
    """

    def __init__(
        self,
        samples: BoundedQueue[Sample],
        batches: BoundedQueue[List[Sample]],
        flush_interval: float = 60.0,
    ):
        if flush_interval <= 0:
            raise ValueError("flush_interval must be > 0")
        self._samples = samples
        self._batches = batches
        self._interval = flush_interval
        self._pending: Dict[str, Sample] = {}
        self._state = CoalescerState.ACCUMULATING
        self._flushes = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CoalescerState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def flushes(self) -> int:
        return self._flushes

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="coalescer")

    async def stop(self) -> None:
        """Cancel the owner task. Pending samples are discarded."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        if self._pending:
            logger.warning(f"coalescer stopped with {len(self._pending)} unflushed samples")

    # --------------------------- owner-only operations

    def apply(self, sample: Sample) -> None:
        """Insert or overwrite by name. Arrival order wins, not timestamp."""
        if sample.name in self._pending:
            SAMPLES_COALESCED_TOTAL.inc()
        self._pending[sample.name] = sample
        PENDING_SAMPLES.set(len(self._pending))

    async def flush(self) -> int:
        """Hand the current set downstream and start a fresh one.

        Returns the number of samples handed off; an empty set is a no-op.
        """
        if not self._pending:
            return 0
        self._state = CoalescerState.FLUSHING
        try:
            drained, self._pending = self._pending, {}
            PENDING_SAMPLES.set(0)
            await self._batches.put(list(drained.values()))
            self._flushes += 1
            logger.debug(f"coalescer flushed {len(drained)} samples")
            return len(drained)
        finally:
            self._state = CoalescerState.ACCUMULATING

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._interval
        logger.debug(f"coalescer started (flush every {self._interval}s)")
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                await self.flush()
                deadline += self._interval
                now = loop.time()
                if deadline <= now:
                    # missed ticks are not replayed
                    deadline = now + self._interval
                continue
            try:
                sample = await self._samples.get(timeout=remaining)
            except asyncio.TimeoutError:
                continue
            self.apply(sample)
