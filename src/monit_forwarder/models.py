"""
Data models for decoded Monit snapshots and flattened samples.

Snapshot/ServiceRecord are immutable pydantic models produced by the decoder;
Sample is the frozen unit that travels through the pipeline queues.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, field_validator


class ServiceKind(IntEnum):
    """Monit service type codes as they appear on the wire."""

    FILESYSTEM = 0
    DIRECTORY = 1
    FILE = 2
    PROCESS = 3
    SYSTEM = 5
    PROGRAM = 7


class _Group(BaseModel):
    model_config = ConfigDict(frozen=True)


class MemoryGroup(_Group):
    percent: float = 0.0
    percenttotal: float = 0.0
    kilobyte: int = 0
    kilobytetotal: int = 0


class CpuGroup(_Group):
    percent: float = 0.0
    percenttotal: float = 0.0


class LoadGroup(_Group):
    avg01: float = 0.0
    avg05: float = 0.0
    avg15: float = 0.0


class CpuSysGroup(_Group):
    user: float = 0.0
    system: float = 0.0
    wait: float = 0.0


class SystemGroup(_Group):
    load: LoadGroup = LoadGroup()
    cpu: CpuSysGroup = CpuSysGroup()
    memory: MemoryGroup = MemoryGroup()


class BlockGroup(_Group):
    percent: float = 0.0
    usage: float = 0.0
    total: float = 0.0


class InodeGroup(_Group):
    percent: float = 0.0
    usage: float = 0.0
    total: float = 0.0


class ServiceRecord(BaseModel):
    """One monitored entity inside a snapshot.

    `kind` stays a plain int so unknown Monit type codes survive decoding
    and are simply ignored by the classifier.
    """

    model_config = ConfigDict(frozen=True)

    prefix: str
    kind: int
    name: str
    collected_sec: int = 0

    # process-only status fields
    status: int = 0
    monitor: int = 0
    uptime: int = 0
    children: int = 0

    memory: MemoryGroup = MemoryGroup()
    cpu: CpuGroup = CpuGroup()
    system: SystemGroup = SystemGroup()
    block: BlockGroup = BlockGroup()
    inode: InodeGroup = InodeGroup()

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return v.strip()


class Snapshot(BaseModel):
    """One decoded push from a monitored host."""

    model_config = ConfigDict(frozen=True)

    host_short_name: str
    records: Tuple[ServiceRecord, ...] = ()
    monit_id: str = ""
    version: str = ""
    poll: int = 0


@dataclass(frozen=True)
class Sample:
    """Flattened, named, timestamped observation ready for delivery."""

    name: str
    value: str
    timestamp: int


def short_host_name(hostname: str) -> str:
    """Host name up to (excluding) the first '.', or the whole name."""
    head, _, _ = hostname.partition(".")
    return head
