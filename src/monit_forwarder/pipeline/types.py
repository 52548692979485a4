from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol, Tuple, TypeVar

from ..errors import DeliveryFatalError, QueueFullError

T = TypeVar("T")

BackpressureCallback = Callable[[], Awaitable[None]]

Connection = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


class Dialer(Protocol):
    """Opens one TCP connection to the collector."""

    async def __call__(self, host: str, port: int) -> Connection: ...


FatalHandler = Callable[[DeliveryFatalError], None]

__all__ = [
    "T",
    "BackpressureCallback",
    "Connection",
    "Dialer",
    "FatalHandler",
    "QueueFullError",
]
