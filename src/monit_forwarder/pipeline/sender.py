"""
Batch sender: renders drained samples and delivers them chunk by chunk.

Every chunk gets its own TCP connection. Dialing is retried within the
RetryPolicy budget; a non-transient dial error or an exhausted budget is
fatal and aborts the remainder of the drain.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from ..errors import AllAddressesFailedError, DeliveryError, DeliveryFatalError
from ..metrics import CHUNKS_SENT_TOTAL, DIAL_FAILURES_TOTAL, SAMPLES_SENT_TOTAL
from ..models import Sample
from ..settings import parse_address
from ..wire import chunked, render_chunk
from .policy import RetryPolicy
from .queue import BoundedQueue
from .types import Connection, Dialer, FatalHandler

MAX_CHUNK_SIZE = 500


async def tcp_dialer(host: str, port: int) -> Connection:
    """Connect to the first resolved address of `host` that accepts.

    Each address is tried in resolver order. When all of them fail the
    per-address errors are kept together in AllAddressesFailedError.
    """
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    if not infos:
        raise socket.gaierror(socket.EAI_NONAME, f"no addresses for {host}")

    errors: List[OSError] = []
    for family, type_, proto, _, sockaddr in infos:
        sock = socket.socket(family, type_, proto)
        try:
            sock.setblocking(False)
            await loop.sock_connect(sock, sockaddr)
        except OSError as exc:
            sock.close()
            errors.append(exc)
            continue
        except BaseException:
            sock.close()
            raise
        return await asyncio.open_connection(sock=sock)

    if len(errors) == 1:
        raise errors[0]
    raise AllAddressesFailedError(host, port, errors)


class BatchSender:
    """Delivers drains to the collector in order, one at a time."""

    def __init__(
        self,
        address: str,
        *,
        batches: Optional[BoundedQueue[List[Sample]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        batch_size: int = MAX_CHUNK_SIZE,
        dial_timeout: float = 5.0,
        dialer: Optional[Dialer] = None,
        on_fatal: Optional[FatalHandler] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.address = address
        self._batches = batches
        self._retry = retry_policy or RetryPolicy()
        self._batch_size = min(batch_size, MAX_CHUNK_SIZE)
        self._dial_timeout = dial_timeout
        self._dialer: Dialer = dialer or tcp_dialer
        self._on_fatal = on_fatal
        self._sleep = sleep
        self._fatal: Optional[DeliveryFatalError] = None
        self._task: Optional[asyncio.Task] = None

        self.samples_sent = 0
        self.chunks_sent = 0

    @property
    def fatal_error(self) -> Optional[DeliveryFatalError]:
        return self._fatal

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    # --------------------------- lifecycle

    def start(self) -> None:
        if self._batches is None:
            raise RuntimeError("BatchSender.start() needs a batch queue")
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="sender")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except (asyncio.CancelledError, DeliveryFatalError):
            pass
        self._task = None

    async def run(self) -> None:
        if self._batches is None:
            raise RuntimeError("BatchSender.run() needs a batch queue")
        while True:
            batch = await self._batches.get()
            try:
                await self.deliver(batch)
            except DeliveryError as exc:
                # the remainder of this drain is lost; the next flush proceeds
                logger.error(f"delivery to {self.address} failed: {exc}")

    # --------------------------- delivery

    async def deliver(self, samples: Sequence[Sample]) -> int:
        """Send all samples, chunked. Returns the number of samples written.

        Raises:
            DeliveryFatalError: dial budget exhausted or non-transient dial error
            DeliveryError: write failed after a successful dial
        """
        if self._fatal is not None:
            raise self._fatal
        sent = 0
        for chunk in chunked(samples, self._batch_size):
            await self._send_chunk(chunk)
            sent += len(chunk)
        return sent

    async def _send_chunk(self, chunk: List[Sample]) -> None:
        payload = render_chunk(chunk)
        _, writer = await self._dial()
        try:
            writer.write(payload)
            await writer.drain()
        except OSError as exc:
            raise DeliveryError(f"write of {len(chunk)} samples failed: {exc}") from exc
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        self.samples_sent += len(chunk)
        self.chunks_sent += 1
        SAMPLES_SENT_TOTAL.inc(len(chunk))
        CHUNKS_SENT_TOTAL.inc()
        logger.info(f"metrics sent to collector: {len(chunk)}")

    async def _dial(self) -> Connection:
        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                host, port = parse_address(self.address)
                return await asyncio.wait_for(
                    self._dialer(host, port), timeout=self._dial_timeout
                )
            except Exception as exc:
                if not self._retry.classify_retryable(exc):
                    DIAL_FAILURES_TOTAL.labels(kind="fatal").inc()
                    self._fail(
                        f"dial {self.address} failed (non-transient): {exc!r}", attempt, exc
                    )
                DIAL_FAILURES_TOTAL.labels(kind="transient").inc()
                if attempt == attempts:
                    self._fail(
                        f"dial {self.address} failed after {attempt} attempts: {exc!r}",
                        attempt,
                        exc,
                    )
                delay_ms = self._retry.next_backoff_ms(attempt)
                logger.warning(
                    f"dial {self.address} attempt {attempt}/{attempts} failed: {exc!r}; "
                    f"retrying in {delay_ms}ms"
                )
                await self._sleep(delay_ms / 1000.0)
        raise AssertionError("unreachable")  # pragma: no cover

    def _fail(self, message: str, attempts: int, cause: BaseException) -> None:
        err = DeliveryFatalError(message, attempts=attempts, cause=cause)
        if self._fatal is None:
            self._fatal = err
            logger.critical(message)
            if self._on_fatal is not None:
                self._on_fatal(err)
        raise err from cause
