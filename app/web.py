from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from services.exporter import ExporterService, build_default_exporter
from settings import VERSION


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_exporter() -> ExporterService:
    return build_default_exporter()


router = APIRouter(include_in_schema=False)


@router.get("/", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    exporter: ExporterService = Depends(get_exporter),
) -> HTMLResponse:
    reports = {report.device: report for report in exporter.status_table.scan()}
    rows = [(device, reports.get(device)) for device in exporter.devices]
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "version": VERSION,
            "rows": rows,
            "series_count": len(exporter.registry),
        },
    )
