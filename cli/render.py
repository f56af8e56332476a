from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

from app.schemas import SampleReport, SampleStatus

_STATUS_COLORS = {
    SampleStatus.ok: typer.colors.GREEN,
    SampleStatus.partial: typer.colors.YELLOW,
    SampleStatus.failed: typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_report(report: SampleReport) -> None:
    echo_heading(f"Sample: {report.device}")
    typer.secho(f"status: {report.status.value}", fg=_STATUS_COLORS[report.status])
    echo_key_values(
        [
            ("main_reading", report.main_reading if report.main_reading is not None else "-"),
            ("applied", report.applied),
            ("duration_ms", report.duration_ms),
        ]
    )
    if report.errors:
        typer.echo("errors:")
        for error in report.errors:
            where = f"line {error.line_number}" if error.line_number else error.stage.value
            typer.echo(f"  - {where}: {error.reason}")


def _format_labels(labels: Dict[str, str]) -> str:
    return ",".join(f'{key}="{value}"' for key, value in labels.items())


def render_series(rows: Iterable[Dict[str, Any]]) -> None:
    echo_heading("Series")
    rows = list(rows)
    if not rows:
        typer.echo("No series exported yet.")
        return
    for row in rows:
        typer.echo(f"{row['metric']}{{{_format_labels(row['labels'])}}} {row['value']}")
