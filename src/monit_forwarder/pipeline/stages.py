from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from loguru import logger

from ..metrics import SAMPLES_EMITTED_TOTAL
from ..models import Sample, ServiceRecord
from .queue import BoundedQueue

Classify = Callable[[ServiceRecord], List[Sample]]


class ClassifierStage:
    """Worker that turns queued ServiceRecords into queued Samples.

    Classification is stateless, so several of these may share one record
    queue. A single worker preserves per-host arrival order end to end.
    """

    def __init__(
        self,
        worker_id: int,
        records: BoundedQueue[ServiceRecord],
        samples: BoundedQueue[Sample],
        classify: Classify,
    ):
        self.worker_id = worker_id
        self._records = records
        self._samples = samples
        self._classify = classify
        self._task: Optional[asyncio.Task] = None

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"classifier-{self.worker_id}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        logger.debug(f"classifier-{self.worker_id} started")
        while True:
            record = await self._records.get()
            samples = self._classify(record)
            for sample in samples:
                await self._samples.put(sample)
            if samples:
                SAMPLES_EMITTED_TOTAL.inc(len(samples))
