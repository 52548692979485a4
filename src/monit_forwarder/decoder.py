"""
Snapshot adapter: decodes one Monit collector XML document.

Expected layout (M/Monit collector protocol)::

    <monit id="..." incarnation="..." version="...">
      <server><localhostname>web01.example.com</localhostname><poll>60</poll></server>
      <services>
        <service name="rootfs"><type>0</type><collected_sec>...</collected_sec>
          <block>...</block><inode>...</inode>
        </service>
        ...
      </services>
    </monit>

Newer agents put the service type in a ``type`` attribute; both are accepted.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Callable, Optional, TypeVar

from .errors import DecodeError
from .models import (
    BlockGroup,
    CpuGroup,
    CpuSysGroup,
    InodeGroup,
    LoadGroup,
    MemoryGroup,
    ServiceRecord,
    Snapshot,
    SystemGroup,
    short_host_name,
)

N = TypeVar("N", int, float)


def _text(el: Optional[ET.Element], path: str) -> Optional[str]:
    if el is None:
        return None
    child = el.find(path)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _number(el: Optional[ET.Element], path: str, cast: Callable[[str], N], default: N) -> N:
    raw = _text(el, path)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        tag = el.tag if el is not None else "?"
        raise DecodeError(f"<{tag}>/{path}: not a number: {raw!r}") from exc


def _int(el: Optional[ET.Element], path: str) -> int:
    return _number(el, path, int, 0)


def _float(el: Optional[ET.Element], path: str) -> float:
    return _number(el, path, float, 0.0)


def _memory(el: Optional[ET.Element]) -> MemoryGroup:
    # older agents spell it "kylobyte"
    kilobyte = _int(el, "kilobyte") if _text(el, "kilobyte") is not None else _int(el, "kylobyte")
    return MemoryGroup(
        percent=_float(el, "percent"),
        percenttotal=_float(el, "percenttotal"),
        kilobyte=kilobyte,
        kilobytetotal=_int(el, "kilobytetotal"),
    )


def _system(el: Optional[ET.Element]) -> SystemGroup:
    if el is None:
        return SystemGroup()
    load = el.find("load")
    cpu = el.find("cpu")
    return SystemGroup(
        load=LoadGroup(
            avg01=_float(load, "avg01"),
            avg05=_float(load, "avg05"),
            avg15=_float(load, "avg15"),
        ),
        cpu=CpuSysGroup(
            user=_float(cpu, "user"),
            system=_float(cpu, "system"),
            wait=_float(cpu, "wait"),
        ),
        memory=_memory(el.find("memory")),
    )


def _kind(el: ET.Element) -> int:
    raw = el.get("type")
    if raw is None:
        return _int(el, "type")
    try:
        return int(raw)
    except ValueError as exc:
        raise DecodeError(f"<service> type attribute not a number: {raw!r}") from exc


def decode_service(el: ET.Element, prefix: str) -> ServiceRecord:
    block = el.find("block")
    inode = el.find("inode")
    cpu = el.find("cpu")
    return ServiceRecord(
        prefix=prefix,
        kind=_kind(el),
        name=el.get("name") or _text(el, "name") or "",
        collected_sec=_int(el, "collected_sec"),
        status=_int(el, "status"),
        monitor=_int(el, "monitor"),
        uptime=_int(el, "uptime"),
        children=_int(el, "children"),
        memory=_memory(el.find("memory")),
        cpu=CpuGroup(percent=_float(cpu, "percent"), percenttotal=_float(cpu, "percenttotal")),
        system=_system(el.find("system")),
        block=BlockGroup(
            percent=_float(block, "percent"),
            usage=_float(block, "usage"),
            total=_float(block, "total"),
        ),
        inode=InodeGroup(
            percent=_float(inode, "percent"),
            usage=_float(inode, "usage"),
            total=_float(inode, "total"),
        ),
    )


def decode_snapshot(payload: bytes) -> Snapshot:
    """Decode a raw document into a Snapshot.

    Raises:
        DecodeError: the payload is not well-formed XML, is not a <monit>
            document, lacks a host name, or carries non-numeric metric fields.
    """
    if not payload or not payload.strip():
        raise DecodeError("empty document")
    try:
        root = ET.fromstring(payload)
    except (ET.ParseError, ValueError, LookupError) as exc:
        raise DecodeError(f"malformed document: {exc}") from exc

    if root.tag != "monit":
        raise DecodeError(f"unexpected root element <{root.tag}>")

    hostname = _text(root, "server/localhostname")
    if hostname is None:
        raise DecodeError("document has no server/localhostname")
    prefix = short_host_name(hostname)
    records = tuple(decode_service(el, prefix) for el in root.iterfind("services/service"))

    return Snapshot(
        host_short_name=prefix,
        records=records,
        monit_id=root.get("id", ""),
        version=root.get("version", ""),
        poll=_int(root, "server/poll"),
    )
