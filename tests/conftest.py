"""
Pytest configuration and fixtures for monit-forwarder.

Provides cross-platform event loop configuration, sample Monit documents,
a scripted dialer and an in-process TCP collector.
"""

import asyncio
import sys
from typing import List, Optional

import pytest
import pytest_asyncio

from monit_forwarder.models import Sample

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


MONIT_XML = """<?xml version="1.0" encoding="ISO-8859-1"?>
<monit id="4c3f6f6a2b1e" incarnation="1699990000" version="5.33.0">
<server>
  <uptime>3600</uptime><poll>60</poll><startdelay>0</startdelay>
  <localhostname>web01.example.com</localhostname>
  <controlfile>/etc/monit/monitrc</controlfile>
</server>
<platform>
  <name>Linux</name><release>6.1.0-13-amd64</release><version>#1 SMP</version>
  <machine>x86_64</machine><cpu>4</cpu><memory>8167400</memory><swap>0</swap>
</platform>
<services>
<service name="web01.example.com">
  <type>5</type><collected_sec>1700000000</collected_sec><collected_usec>0</collected_usec>
  <status>0</status><status_hint>0</status_hint><monitor>1</monitor><monitormode>0</monitormode>
  <pendingaction>0</pendingaction>
  <system>
    <load><avg01>0.52</avg01><avg05>0.40</avg05><avg15>0.35</avg15></load>
    <cpu><user>12.5</user><system>3.1</system><wait>0.0</wait></cpu>
    <memory><percent>41.2</percent><kilobyte>3365678</kilobyte></memory>
  </system>
</service>
<service name="rootfs">
  <type>0</type><collected_sec>1700000000</collected_sec><collected_usec>0</collected_usec>
  <status>0</status><monitor>1</monitor><mode>755</mode><uid>0</uid><gid>0</gid>
  <block><percent>45.3</percent><usage>9120.5</usage><total>20133.2</total></block>
  <inode><percent>12.1</percent><usage>158034</usage><total>1310720</total></inode>
</service>
<service name="nginx">
  <type>3</type><collected_sec>1700000000</collected_sec><collected_usec>0</collected_usec>
  <status>0</status><monitor>1</monitor><pid>812</pid><ppid>1</ppid>
  <uptime>86400</uptime><children>4</children>
  <memory><percent>1.3</percent><percenttotal>5.2</percenttotal>
    <kilobyte>106496</kilobyte><kilobytetotal>425984</kilobytetotal></memory>
  <cpu><percent>0.4</percent><percenttotal>1.6</percenttotal></cpu>
</service>
<service name="gateway">
  <type>4</type><collected_sec>1700000000</collected_sec><status>0</status><monitor>1</monitor>
</service>
</services>
</monit>
"""


@pytest.fixture
def monit_xml() -> bytes:
    """A realistic Monit collector push (system, filesystem, process, host)."""
    return MONIT_XML.encode("iso-8859-1")


def make_samples(n: int, prefix: str = "web01.system.metric") -> List[Sample]:
    return [Sample(f"{prefix}{i}", str(i), 1700000000) for i in range(n)]


# --- Fake transport ---------------------------------------------------------


class FakeWriter:
    """Stands in for asyncio.StreamWriter; records bytes written."""

    def __init__(self, fail_write: Optional[BaseException] = None):
        self._fail = fail_write
        self.data = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        if self._fail is not None:
            raise self._fail
        self.data += data

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    @property
    def lines(self) -> List[str]:
        return self.data.decode("ascii").splitlines()


class ScriptedDialer:
    """Dialer that raises the queued errors in order, then connects."""

    def __init__(self, failures=(), fail_write: Optional[BaseException] = None):
        self._failures = list(failures)
        self._fail_write = fail_write
        self.calls = 0
        self.addresses = []
        self.writers: List[FakeWriter] = []

    async def __call__(self, host: str, port: int):
        self.calls += 1
        self.addresses.append((host, port))
        if self._failures:
            raise self._failures.pop(0)
        writer = FakeWriter(self._fail_write)
        self.writers.append(writer)
        return None, writer


class AlwaysFailDialer(ScriptedDialer):
    def __init__(self, exc_factory=lambda: ConnectionRefusedError(111, "Connection refused")):
        super().__init__()
        self._factory = exc_factory

    async def __call__(self, host: str, port: int):
        self.calls += 1
        raise self._factory()


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    async def _sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    return _sleep


# --- In-process collector ---------------------------------------------------


class CollectorServer:
    """Plaintext TCP listener that stores each connection's payload."""

    def __init__(self):
        self.payloads: List[bytes] = []
        self._server: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.payloads.append(await reader.read())
        writer.close()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.port}"

    @property
    def lines(self) -> List[str]:
        return [line for p in self.payloads for line in p.decode("ascii").splitlines()]

    async def wait_for_payloads(self, n: int, timeout: float = 2.0) -> None:
        async def _poll():
            while len(self.payloads) < n:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout)


@pytest_asyncio.fixture
async def collector():
    server = CollectorServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def scripted_dialer():
    """Factory: ScriptedDialer(failures=[...], fail_write=None)."""
    return ScriptedDialer


@pytest.fixture
def failing_dialer():
    """Factory: AlwaysFailDialer(exc_factory=...)."""
    return AlwaysFailDialer


@pytest.fixture
def sample_factory():
    return make_samples
