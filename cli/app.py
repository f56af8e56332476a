from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from app.main import create_app
from app.schemas import SampleStatus
from cli.client import ScrapeClient
from cli.config import CLIConfig, load_config
from cli.render import render_report, render_series
from datastore.metric_registry import MetricRegistry
from inventory.devices import DeviceConfigError, parse_device_list
from logging_config import configure_logging
from services.commands import DiagnosticCommand
from services.exporter import build_default_exporter
from services.sampler import DeviceSampler
from settings import VERSION, get_settings


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Prometheus exporter for mget_temp adapter temperatures and voltages.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _override_env(name: str, value: Optional[object]) -> None:
    if value is None:
        return
    os.environ[name] = str(value)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mget_exporter {VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Exporter base URL for scrape (defaults to EXPORTER_BASE_URL env or http://localhost:6656).",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Entry point for the CLI."""
    _override_env("LOG_LEVEL", log_level.upper() if log_level else None)
    get_settings.cache_clear()
    ctx.obj = CLIState(config=load_config(base_url=base_url))


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Listen address."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on."),
    devices: Optional[str] = typer.Option(
        None, "--devices", "-d", help="Comma-separated devices; overrides the config file."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Device list file, one device per line."
    ),
    discover: Optional[bool] = typer.Option(
        None, "--discover/--no-discover", help="Find devices with `mst status`."
    ),
) -> None:
    """Poll devices and serve the scrape endpoint."""
    _override_env("EXPORTER_HOST", host)
    _override_env("EXPORTER_PORT", port)
    _override_env("MGET_DEVICES", devices)
    _override_env("MGET_DEVICES_CONFIG", config_path)
    if discover is not None:
        os.environ["MGET_DISCOVER"] = "true" if discover else "false"
    get_settings.cache_clear()
    build_default_exporter.cache_clear()

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        exporter = build_default_exporter()
    except DeviceConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"Listening on {settings.host}:{settings.port} for {len(exporter.devices)} device(s)"
    )
    try:
        uvicorn.run(
            create_app(),
            host=settings.host,
            port=settings.port,
            ssl_certfile=settings.tls_cert_path,
            ssl_keyfile=settings.tls_key_path,
            log_config=None,
        )
    except OSError as exc:
        typer.secho(f"Failed to start HTTP server: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.command("sample")
def sample_command(
    devices: List[str] = typer.Argument(..., help="Devices to sample once, e.g. /dev/mst/mt4119_pciconf0."),
    binary: Optional[str] = typer.Option(None, "--binary", help="Path to mget_temp."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-command timeout in seconds."),
) -> None:
    """Run one sampling pass per device and print the result."""
    settings = get_settings()
    configure_logging(settings.log_level)

    targets = [device for value in devices for device in parse_device_list(value)]
    command = DiagnosticCommand(
        binary=binary or settings.mget_temp_binary,
        timeout=timeout if timeout is not None else settings.command_timeout,
    )
    registry = MetricRegistry()
    sampler = DeviceSampler(command=command, registry=registry)

    reports = [sampler.sample(device) for device in targets]
    for report in reports:
        render_report(report)
        typer.echo()

    render_series(
        {"metric": snapshot.metric_name, "labels": snapshot.labels, "value": snapshot.value}
        for snapshot in registry.snapshot()
    )
    if any(report.status is SampleStatus.failed for report in reports):
        raise typer.Exit(code=1)


@app.command("scrape")
def scrape_command(ctx: typer.Context) -> None:
    """Fetch /metrics from a running exporter and list its series."""
    state = _get_state(ctx)
    client = ScrapeClient(state.config)
    ctx.call_on_close(client.close)
    render_series(client.fetch_series())
