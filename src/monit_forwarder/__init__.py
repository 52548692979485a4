"""
Monit to carbon forwarder

Receives Monit/M/Monit collector pushes (one XML document per host per poll),
flattens them into `monit.<host>.<service>.<group>.<field>` samples, coalesces
them per flush window and delivers them over the carbon plaintext protocol.

Usage:
    from monit_forwarder import Forwarder, decode_snapshot

    async with Forwarder("127.0.0.1:2003") as fwd:
        await fwd.submit(decode_snapshot(xml_bytes))
"""

from .classifier import RecordClassifier, classify
from .decoder import decode_snapshot
from .errors import (
    DecodeError,
    DeliveryError,
    DeliveryFatalError,
    ForwarderError,
    InvalidAddressError,
)
from .models import Sample, ServiceKind, ServiceRecord, Snapshot, short_host_name
from .pipeline import BatchSender, Forwarder, RetryPolicy, SampleCoalescer
from .settings import ForwarderSettings, get_settings

__version__ = "1.0.0"
__all__ = [
    "Forwarder",
    "BatchSender",
    "SampleCoalescer",
    "RetryPolicy",
    "RecordClassifier",
    "classify",
    "decode_snapshot",
    "Sample",
    "ServiceKind",
    "ServiceRecord",
    "Snapshot",
    "short_host_name",
    "ForwarderSettings",
    "get_settings",
    "ForwarderError",
    "DecodeError",
    "DeliveryError",
    "DeliveryFatalError",
    "InvalidAddressError",
]
