"""
Record classifier: flattens one ServiceRecord into named samples.

Pure functions of a single record; safe to call from any number of
workers at once.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Callable, Dict, List, Tuple, Union

from .models import Sample, ServiceKind, ServiceRecord
from .wire import format_value

Number = Union[int, float]
FieldSpec = Tuple[str, Callable[[ServiceRecord], Number]]

_WHITESPACE = re.compile(r"\s+")
_NON_ASCII = re.compile(r"[^\x00-\x7f]")

SYSTEM_FIELDS: Tuple[FieldSpec, ...] = (
    ("cpu.user", lambda r: r.system.cpu.user),
    ("cpu.system", lambda r: r.system.cpu.system),
    ("cpu.wait", lambda r: r.system.cpu.wait),
    ("load.avg01", lambda r: r.system.load.avg01),
    ("load.avg05", lambda r: r.system.load.avg05),
    ("load.avg15", lambda r: r.system.load.avg15),
    ("memory.percent", lambda r: r.system.memory.percent),
    ("memory.percenttotal", lambda r: r.system.memory.percenttotal),
    ("memory.kilobyte", lambda r: r.system.memory.kilobyte),
    ("memory.kilobytetotal", lambda r: r.system.memory.kilobytetotal),
)

FILESYSTEM_FIELDS: Tuple[FieldSpec, ...] = (
    ("block.percent", lambda r: r.block.percent),
    ("block.usage", lambda r: r.block.usage),
    ("block.total", lambda r: r.block.total),
    ("inode.percent", lambda r: r.inode.percent),
    ("inode.usage", lambda r: r.inode.usage),
    ("inode.total", lambda r: r.inode.total),
)

# Opt-in only: one series per process per field adds up quickly.
PROCESS_FIELDS: Tuple[FieldSpec, ...] = (
    ("status", lambda r: r.status),
    ("monitor", lambda r: r.monitor),
    ("uptime", lambda r: r.uptime),
    ("children", lambda r: r.children),
    ("memory.percent", lambda r: r.memory.percent),
    ("memory.percenttotal", lambda r: r.memory.percenttotal),
    ("memory.kilobyte", lambda r: r.memory.kilobyte),
    ("memory.kilobytetotal", lambda r: r.memory.kilobytetotal),
    ("cpu.percent", lambda r: r.cpu.percent),
    ("cpu.percenttotal", lambda r: r.cpu.percenttotal),
)


def sanitize_label(label: str) -> str:
    """Make a host or service name safe for a plaintext metric path.

    Whitespace runs become `_`. Accented letters lose their accent
    ("données" -> "donnees"); any other non-ASCII character becomes `_`.
    """
    decomposed = unicodedata.normalize("NFKD", label.strip())
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ASCII.sub("_", _WHITESPACE.sub("_", folded))


def _emit(base: str, fields: Tuple[FieldSpec, ...], record: ServiceRecord) -> List[Sample]:
    return [
        Sample(f"{base}.{suffix}", format_value(getter(record)), record.collected_sec)
        for suffix, getter in fields
    ]


def _classify_system(record: ServiceRecord) -> List[Sample]:
    return _emit(f"{sanitize_label(record.prefix)}.system", SYSTEM_FIELDS, record)


def _classify_filesystem(record: ServiceRecord) -> List[Sample]:
    base = f"{sanitize_label(record.prefix)}.filesystem.{sanitize_label(record.name)}"
    return _emit(base, FILESYSTEM_FIELDS, record)


def _classify_process(record: ServiceRecord) -> List[Sample]:
    base = f"{sanitize_label(record.prefix)}.process.{sanitize_label(record.name)}"
    return _emit(base, PROCESS_FIELDS, record)


_HANDLERS: Dict[int, Callable[[ServiceRecord], List[Sample]]] = {
    ServiceKind.SYSTEM: _classify_system,
    ServiceKind.FILESYSTEM: _classify_filesystem,
}


def classify(record: ServiceRecord, *, include_processes: bool = False) -> List[Sample]:
    """Map one record to its samples.

    SYSTEM and FILESYSTEM records always produce samples. PROCESS records
    produce nothing unless `include_processes` is set. Every other kind,
    including codes Monit may add later, yields an empty list.
    """
    if record.kind == ServiceKind.PROCESS:
        return _classify_process(record) if include_processes else []
    handler = _HANDLERS.get(record.kind)
    if handler is None:
        return []
    return handler(record)


class RecordClassifier:
    """Callable wrapper carrying the classification policy."""

    def __init__(self, include_processes: bool = False):
        self.include_processes = include_processes

    def __call__(self, record: ServiceRecord) -> List[Sample]:
        return classify(record, include_processes=self.include_processes)
