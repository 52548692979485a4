"""
Inbound HTTP endpoint for Monit/M/Monit collector pushes.

POST /collector with one XML document per request. A malformed document
is rejected with 400 and the server keeps serving.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from aiohttp import web
from loguru import logger

from .decoder import decode_snapshot
from .errors import DecodeError
from .metrics import DOCUMENTS_TOTAL
from .pipeline import Forwarder
from .settings import ForwarderSettings

COLLECTOR_PATH = "/collector"

FORWARDER_KEY = web.AppKey("forwarder", Forwarder)
DUMP_EVENT_KEY = web.AppKey("dump_event", asyncio.Event)


async def handle_collector(request: web.Request) -> web.Response:
    body = await request.read()

    dump_event = request.app.get(DUMP_EVENT_KEY)
    if dump_event is not None:
        if not dump_event.is_set():
            logger.info(f"first document from {request.remote}:\n{body.decode('utf-8', errors='replace')}")
            dump_event.set()
        return web.Response(status=200)

    try:
        snapshot = decode_snapshot(body)
    except DecodeError as exc:
        DOCUMENTS_TOTAL.labels(outcome="rejected").inc()
        logger.warning(f"rejected document from {request.remote}: {exc}")
        raise web.HTTPBadRequest(text=str(exc))

    await request.app[FORWARDER_KEY].submit(snapshot)
    DOCUMENTS_TOTAL.labels(outcome="accepted").inc()
    logger.debug(
        f"accepted snapshot from {snapshot.host_short_name} ({len(snapshot.records)} services, "
        f"monit {snapshot.version or '?'} id={snapshot.monit_id or '?'} poll={snapshot.poll}s)"
    )
    return web.Response(status=200)


def create_app(forwarder: Forwarder, *, dump_event: Optional[asyncio.Event] = None) -> web.Application:
    app = web.Application()
    app[FORWARDER_KEY] = forwarder
    if dump_event is not None:
        app[DUMP_EVENT_KEY] = dump_event
    app.router.add_post(COLLECTOR_PATH, handle_collector)
    return app


async def serve(settings: ForwarderSettings, *, dump_first: bool = False) -> int:
    """Run listener and pipeline until a fatal delivery error (or the first
    document, with dump_first). Returns the process exit code."""
    host, port = settings.listen
    dump_event = asyncio.Event() if dump_first else None

    forwarder = Forwarder.from_settings(settings)
    runner = web.AppRunner(create_app(forwarder, dump_event=dump_event), access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host or None, port)

    async with forwarder:
        await site.start()
        logger.info(f"forwarder listening for input on {settings.LISTEN_ADDRESS}{COLLECTOR_PATH}")

        waiters = [asyncio.create_task(forwarder.wait_fatal(), name="wait-fatal")]
        if dump_event is not None:
            waiters.append(asyncio.create_task(dump_event.wait(), name="wait-dump"))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                task.cancel()
            await runner.cleanup()

    if forwarder.fatal_error is not None:
        err = forwarder.fatal_error
        logger.critical(f"giving up on collector {settings.COLLECTOR_ADDRESS}: {err} (attempts={err.attempts})")
        return 1
    return 0
