"""Forwarding pipeline

records → ClassifierStage → samples → SampleCoalescer → batches → BatchSender

- BoundedQueue (watermarks + overflow strategies) between every stage
- SampleCoalescer with last-write-wins and a fixed flush tick
- BatchSender with 500-line chunks and a bounded dial RetryPolicy
- Forwarder orchestration & health
"""

from .types import Dialer, FatalHandler, BackpressureCallback, T, QueueFullError
from .policy import RetryPolicy, default_retry_classifier
from .queue import BoundedQueue
from .stages import ClassifierStage
from .coalescer import SampleCoalescer, CoalescerState
from .sender import BatchSender, MAX_CHUNK_SIZE, tcp_dialer
from .forwarder import Forwarder, ForwarderHealth

__all__ = [
    # types
    "Dialer",
    "FatalHandler",
    "BackpressureCallback",
    "T",
    "QueueFullError",
    "ForwarderHealth",
    "CoalescerState",
    # policies
    "RetryPolicy",
    "default_retry_classifier",
    # runtime
    "BoundedQueue",
    "ClassifierStage",
    "SampleCoalescer",
    "BatchSender",
    "MAX_CHUNK_SIZE",
    "tcp_dialer",
    "Forwarder",
]
