"""HTTP route definitions for the exporter."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.schemas import DeviceDetail, SampleReport, SeriesView
from services.exporter import ExporterService, build_default_exporter

router = APIRouter()


def get_exporter() -> ExporterService:
    return build_default_exporter()


@router.get(
    "/metrics",
    summary="Prometheus scrape endpoint.",
    response_class=Response,
)
def metrics(exporter: ExporterService = Depends(get_exporter)) -> Response:
    payload = generate_latest(exporter.collector_registry)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/devices",
    response_model=list[SampleReport],
    summary="Latest sampling report for every device that has been polled.",
)
async def list_devices(
    exporter: ExporterService = Depends(get_exporter),
) -> list[SampleReport]:
    return exporter.status_table.scan()


@router.get(
    "/devices/{device:path}",
    response_model=DeviceDetail,
    summary="Latest report and exported series for one configured device.",
)
async def get_device(
    device: str,
    exporter: ExporterService = Depends(get_exporter),
) -> DeviceDetail:
    if device not in exporter.devices:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {device!r} is not configured.",
        )
    series = [
        SeriesView(metric=snapshot.metric_name, labels=snapshot.labels, value=snapshot.value)
        for snapshot in exporter.registry.snapshot()
        if snapshot.key.device == device
    ]
    return DeviceDetail(
        device=device,
        report=exporter.status_table.get_report(device),
        series=series,
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
