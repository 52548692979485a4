from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from ..classifier import RecordClassifier
from ..errors import DeliveryFatalError
from ..models import Sample, ServiceRecord, Snapshot
from ..settings import ForwarderSettings
from .coalescer import SampleCoalescer
from .policy import RetryPolicy
from .queue import BoundedQueue, OverflowStrategy
from .sender import BatchSender
from .stages import ClassifierStage
from .types import Dialer, FatalHandler


@dataclass(frozen=True)
class ForwarderHealth:
    classifiers_alive: int
    coalescer_alive: bool
    sender_alive: bool
    record_queue_size: int
    sample_queue_size: int
    batch_queue_size: int
    pending_samples: int
    samples_sent: int
    chunks_sent: int
    fatal: bool


def _watermark_logger(queue_name: str, level: str):
    async def _cb() -> None:
        if level == "high":
            logger.warning(f"{queue_name}: above high watermark, producers will slow down")
        else:
            logger.info(f"{queue_name}: drained below low watermark")

    return _cb


class Forwarder:
    """Wires classifier workers, the coalescer and the sender together.

    All queues are created here and handed to each stage; nothing is shared
    through module state. Usage:

        async with Forwarder("127.0.0.1:2003") as fwd:
            await fwd.submit(snapshot)
            await fwd.wait_fatal()
    """

    def __init__(
        self,
        collector_address: str,
        *,
        flush_interval: float = 60.0,
        batch_size: int = 500,
        retry_policy: Optional[RetryPolicy] = None,
        dial_timeout: float = 5.0,
        record_capacity: int = 10_000,
        sample_capacity: int = 100_000,
        batch_capacity: int = 4,
        overflow_strategy: OverflowStrategy = "block",
        classifier_workers: int = 1,
        include_processes: bool = False,
        dialer: Optional[Dialer] = None,
        on_fatal: Optional[FatalHandler] = None,
    ):
        if classifier_workers <= 0:
            raise ValueError("classifier_workers must be > 0")

        self._records: BoundedQueue[ServiceRecord] = BoundedQueue(
            record_capacity,
            name="records",
            overflow_strategy=overflow_strategy,
            on_high=_watermark_logger("records", "high"),
            on_low=_watermark_logger("records", "low"),
        )
        self._samples: BoundedQueue[Sample] = BoundedQueue(
            sample_capacity,
            name="samples",
            overflow_strategy=overflow_strategy,
            on_high=_watermark_logger("samples", "high"),
            on_low=_watermark_logger("samples", "low"),
        )
        # drains are never dropped: losing one loses a whole flush window
        self._batches: BoundedQueue[List[Sample]] = BoundedQueue(
            batch_capacity, name="batches", overflow_strategy="block"
        )

        classify = RecordClassifier(include_processes=include_processes)
        self._classifiers = [
            ClassifierStage(i, self._records, self._samples, classify)
            for i in range(classifier_workers)
        ]
        self._coalescer = SampleCoalescer(self._samples, self._batches, flush_interval)
        self._user_on_fatal = on_fatal
        self._fatal_event = asyncio.Event()
        self._sender = BatchSender(
            collector_address,
            batches=self._batches,
            retry_policy=retry_policy,
            batch_size=batch_size,
            dial_timeout=dial_timeout,
            dialer=dialer,
            on_fatal=self._handle_fatal,
        )
        self._started = False

    @classmethod
    def from_settings(cls, settings: ForwarderSettings, **overrides) -> "Forwarder":
        kwargs = dict(
            flush_interval=settings.FLUSH_INTERVAL_SEC,
            batch_size=settings.BATCH_SIZE,
            retry_policy=RetryPolicy(
                max_attempts=settings.MAX_DIAL_ATTEMPTS,
                initial_backoff_ms=settings.INITIAL_BACKOFF_MS,
                max_backoff_ms=settings.MAX_BACKOFF_MS,
            ),
            dial_timeout=settings.DIAL_TIMEOUT_SEC,
            record_capacity=settings.RECORD_QUEUE_CAPACITY,
            sample_capacity=settings.SAMPLE_QUEUE_CAPACITY,
            overflow_strategy=settings.OVERFLOW_STRATEGY,
            classifier_workers=settings.CLASSIFIER_WORKERS,
            include_processes=settings.INCLUDE_PROCESS_METRICS,
        )
        kwargs.update(overrides)
        return cls(settings.COLLECTOR_ADDRESS, **kwargs)

    # --------------------------- lifecycle

    async def __aenter__(self) -> "Forwarder":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> None:
        if self._started:
            return
        for stage in self._classifiers:
            stage.start()
        self._coalescer.start()
        self._sender.start()
        self._started = True
        logger.info(f"forwarding Monit samples to {self._sender.address}")

    async def stop(self) -> None:
        """Stop all stages. No flush-on-exit: unflushed samples are dropped."""
        if not self._started:
            return
        for stage in self._classifiers:
            await stage.stop()
        await self._coalescer.stop()
        await self._sender.stop()
        self._started = False

    # --------------------------- producer API

    async def submit(self, snapshot: Snapshot) -> int:
        """Queue every record of a snapshot for classification."""
        for record in snapshot.records:
            await self._records.put(record)
        return len(snapshot.records)

    # --------------------------- fatal path

    def _handle_fatal(self, err: DeliveryFatalError) -> None:
        self._fatal_event.set()
        if self._user_on_fatal is not None:
            self._user_on_fatal(err)

    @property
    def fatal_error(self) -> Optional[DeliveryFatalError]:
        return self._sender.fatal_error

    async def wait_fatal(self) -> DeliveryFatalError:
        """Block until the sender hits a fatal error, then return it."""
        await self._fatal_event.wait()
        err = self._sender.fatal_error
        if err is None:
            raise RuntimeError("fatal event set without a recorded delivery error")
        return err

    # --------------------------- health

    def health(self) -> ForwarderHealth:
        return ForwarderHealth(
            classifiers_alive=sum(1 for s in self._classifiers if s.alive),
            coalescer_alive=self._coalescer.alive,
            sender_alive=self._sender.alive,
            record_queue_size=self._records.size,
            sample_queue_size=self._samples.size,
            batch_queue_size=self._batches.size,
            pending_samples=self._coalescer.pending,
            samples_sent=self._sender.samples_sent,
            chunks_sent=self._sender.chunks_sent,
            fatal=self._sender.fatal_error is not None,
        )
