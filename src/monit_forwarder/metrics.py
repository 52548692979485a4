"""
Prometheus instruments for the forwarder.

Registered on the global REGISTRY at import time; exposed only when the
CLI is given a metrics port.
"""

from prometheus_client import Counter, Gauge

DOCUMENTS_TOTAL = Counter(
    "monit_forwarder_documents_total",
    "Inbound Monit documents by outcome",
    ["outcome"],
)

SAMPLES_EMITTED_TOTAL = Counter(
    "monit_forwarder_samples_emitted_total",
    "Samples produced by the classifier",
)

SAMPLES_COALESCED_TOTAL = Counter(
    "monit_forwarder_samples_coalesced_total",
    "Samples overwritten by a newer value before the flush",
)

SAMPLES_SENT_TOTAL = Counter(
    "monit_forwarder_samples_sent_total",
    "Samples written to the collector",
)

CHUNKS_SENT_TOTAL = Counter(
    "monit_forwarder_chunks_sent_total",
    "Chunks written to the collector (one TCP connection each)",
)

DIAL_FAILURES_TOTAL = Counter(
    "monit_forwarder_dial_failures_total",
    "Failed collector dial attempts",
    ["kind"],
)

QUEUE_DROPPED_TOTAL = Counter(
    "monit_forwarder_queue_dropped_total",
    "Items dropped by a drop_oldest queue",
    ["queue"],
)

QUEUE_DEPTH = Gauge(
    "monit_forwarder_queue_depth",
    "Current depth of an inter-stage queue",
    ["queue"],
)

PENDING_SAMPLES = Gauge(
    "monit_forwarder_pending_samples",
    "Distinct metric names waiting for the next flush",
)
