"""
Custom exceptions for the Monit forwarder.

Request-scoped errors (decode) are recoverable; delivery errors past the
dial budget are process-fatal.
"""

from __future__ import annotations

import asyncio
import errno
import socket


class ForwarderError(Exception):
    """Base error for the forwarder."""

    pass


class DecodeError(ForwarderError):
    """Inbound document could not be decoded into a snapshot."""

    pass


class InvalidAddressError(ForwarderError, ValueError):
    """Collector address is not a usable host:port pair."""

    pass


class DeliveryError(ForwarderError):
    """Write to the collector failed after a successful dial."""

    pass


class DeliveryFatalError(ForwarderError):
    """Collector unreachable within the dial budget, or dial failed non-transiently."""

    def __init__(self, message: str, *, attempts: int, cause: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class AllAddressesFailedError(OSError):
    """Every address the collector host resolved to refused or failed the dial."""

    def __init__(self, host: str, port: int, errors: list):
        detail = "; ".join(str(e) for e in errors)
        super().__init__(f"all {len(errors)} addresses of {host}:{port} failed: {detail}")
        self.errors = list(errors)


class QueueFullError(ForwarderError):
    """Raised by a BoundedQueue using the 'error' overflow strategy."""

    pass


TRANSIENT_ERRNOS = frozenset(
    {
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
        errno.EHOSTDOWN,
        errno.ENETDOWN,
        errno.ETIMEDOUT,
        errno.EAGAIN,
    }
)


def is_transient_dial_error(exc: BaseException) -> bool:
    """Classify a dial failure as retryable.

    Closed set: refused/reset/aborted connections, timeouts, unreachable
    hosts or networks, and temporary name-resolution failures. A failure
    across several resolved addresses is transient only if each one is. Anything
    else (bad address, permission, unknown host) is fatal.
    """
    if isinstance(exc, InvalidAddressError):
        return False
    if isinstance(exc, AllAddressesFailedError):
        return bool(exc.errors) and all(is_transient_dial_error(e) for e in exc.errors)
    if isinstance(exc, socket.gaierror):
        return exc.errno == socket.EAI_AGAIN
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, (ConnectionRefusedError, ConnectionResetError, ConnectionAbortedError)):
        return True
    if isinstance(exc, OSError):
        return exc.errno in TRANSIENT_ERRNOS
    return False
