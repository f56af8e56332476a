"""Wires the registry, sampler and scheduler into one process runtime."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

from prometheus_client import CollectorRegistry

from datastore.metric_registry import MetricRegistry, build_collector_registry
from datastore.sample_status import SampleStatusTable
from inventory.devices import resolve_devices
from services.commands import DiagnosticCommand
from services.sampler import DeviceSampler
from services.scheduler import PollScheduler
from settings import get_settings

logger = logging.getLogger(__name__)


class ExporterService:
    """Owns the process-lifetime state shared by polling and scraping."""

    def __init__(
        self,
        devices: Sequence[str],
        sampler: DeviceSampler,
        interval: float = 10.0,
        workers: Optional[int] = None,
    ) -> None:
        self.devices = list(devices)
        self.sampler = sampler
        self.registry = sampler.registry
        self.status_table = sampler.status_table or SampleStatusTable()
        sampler.status_table = self.status_table
        self.collector_registry: CollectorRegistry = build_collector_registry(self.registry)
        self.scheduler = PollScheduler(
            sampler=sampler,
            devices=self.devices,
            interval=interval,
            workers=workers,
        )

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        """Stop polling. In-flight passes are abandoned by default."""
        self.scheduler.stop(wait=wait)


def build_exporter(
    devices: Sequence[str],
    mget_temp_binary: str = "mget_temp",
    command_timeout: Optional[float] = 8.0,
    interval: float = 10.0,
    workers: Optional[int] = None,
) -> ExporterService:
    command = DiagnosticCommand(binary=mget_temp_binary, timeout=command_timeout)
    sampler = DeviceSampler(
        command=command,
        registry=MetricRegistry(),
        status_table=SampleStatusTable(),
    )
    return ExporterService(devices=devices, sampler=sampler, interval=interval, workers=workers)


@lru_cache
def build_default_exporter() -> ExporterService:
    """Factory that resolves devices from settings and wires the exporter."""
    settings = get_settings()
    devices = resolve_devices(settings)
    return build_exporter(
        devices=devices,
        mget_temp_binary=settings.mget_temp_binary,
        command_timeout=settings.command_timeout,
        interval=settings.poll_interval,
        workers=settings.sampler_workers,
    )
