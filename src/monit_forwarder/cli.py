from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from prometheus_client import start_http_server

from .classifier import classify
from .decoder import decode_snapshot
from .errors import DecodeError, InvalidAddressError
from .server import serve
from .settings import ForwarderSettings, get_settings, parse_address
from .wire import render_line

app = typer.Typer(help="Forward Monit collector pushes to a carbon/graphite plaintext listener")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command()
def run(
    collector: Optional[str] = typer.Option(
        None, "--collector", "-c", help="Collector address host:port [default: 127.0.0.1:2003]"
    ),
    listen: Optional[str] = typer.Option(
        None, "--listen", "-l", help="Listening address for Monit pushes [default: :3005]"
    ),
    dump_first: bool = typer.Option(
        False, "--dump-first", "-d", help="Log the first Monit document received and exit"
    ),
    flush_interval: Optional[float] = typer.Option(
        None, "--flush-interval", help="Seconds between flushes to the collector"
    ),
    include_processes: Optional[bool] = typer.Option(
        None, "--include-processes/--no-include-processes", help="Forward per-process metrics"
    ),
    metrics_port: Optional[int] = typer.Option(
        None, "--metrics-port", help="Expose Prometheus metrics on this port (0 disables)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
):
    """Run the forwarder until the collector becomes unreachable."""
    base = get_settings()
    overrides = {
        "COLLECTOR_ADDRESS": collector,
        "LISTEN_ADDRESS": listen,
        "FLUSH_INTERVAL_SEC": flush_interval,
        "INCLUDE_PROCESS_METRICS": include_processes,
        "METRICS_PORT": metrics_port,
        "LOG_LEVEL": log_level,
    }
    settings = ForwarderSettings(
        **{**base.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
    )
    configure_logging(settings.LOG_LEVEL)

    try:
        parse_address(settings.COLLECTOR_ADDRESS)
        parse_address(settings.LISTEN_ADDRESS)
    except InvalidAddressError as exc:
        logger.error(f"invalid address: {exc}")
        raise typer.Exit(2)

    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        logger.info(f"prometheus metrics on :{settings.METRICS_PORT}")

    try:
        code = asyncio.run(serve(settings, dump_first=dump_first))
    except KeyboardInterrupt:
        logger.info("interrupted")
        code = 0
    raise typer.Exit(code)


@app.command()
def check(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved Monit XML document"),
    include_processes: bool = typer.Option(False, "--include-processes", help="Include per-process metrics"),
):
    """Decode a saved document and print the lines that would be sent."""
    try:
        snapshot = decode_snapshot(path.read_bytes())
    except DecodeError as exc:
        typer.echo(f"decode error: {exc}", err=True)
        raise typer.Exit(1)

    for record in snapshot.records:
        for sample in classify(record, include_processes=include_processes):
            typer.echo(render_line(sample), nl=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
