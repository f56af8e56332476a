"""One sampling pass for one device."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Protocol

from app.schemas import SampleError, SampleReport, SampleStage, SampleStatus
from datastore.metric_registry import MetricRegistry
from datastore.sample_status import SampleStatusTable
from models.records import Measurement, SeriesKey
from services.commands import CommandError
from services.parser import ReadingDataError, parse_decimal, parse_table

logger = logging.getLogger(__name__)


class DiagnosticSource(Protocol):
    def read_primary(self, device: str) -> str: ...

    def read_table(self, device: str) -> str: ...


class DeviceSampler:
    """Runs the diagnostic command for a device and updates the registry."""

    def __init__(
        self,
        command: DiagnosticSource,
        registry: MetricRegistry,
        status_table: Optional[SampleStatusTable] = None,
        read_primary: bool = True,
    ) -> None:
        self.command = command
        self.registry = registry
        self.status_table = status_table
        self.read_primary = read_primary

    def sample(self, device: str) -> SampleReport:
        """Perform one pass. Never raises for command or data problems."""
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        errors: list[SampleError] = []

        main_reading: Optional[float] = None
        primary_failed = False
        if self.read_primary:
            try:
                main_reading = self._sample_primary(device)
            except CommandError as exc:
                primary_failed = True
                self._log_command_error(device, exc)
                errors.append(SampleError(stage=SampleStage.primary, reason=str(exc)))
            except ValueError as exc:
                primary_failed = True
                logger.error(
                    "Error parsing main temperature",
                    extra={"device": device, "reason": str(exc)},
                )
                errors.append(SampleError(stage=SampleStage.primary, reason=str(exc)))

        applied = 0
        table_failed = False
        try:
            output = self.command.read_table(device)
        except CommandError as exc:
            table_failed = True
            self._log_command_error(device, exc)
            errors.append(SampleError(stage=SampleStage.table, reason=str(exc)))
        else:
            for line_number, row in parse_table(device, output):
                if isinstance(row, ReadingDataError):
                    logger.warning(
                        "Dropping unusable sensor row",
                        extra={
                            "device": device,
                            "sensor": row.sensor,
                            "line_number": line_number,
                            "reason": row.reason,
                        },
                    )
                    errors.append(
                        SampleError(stage=SampleStage.line, reason=str(row), line_number=line_number)
                    )
                    continue
                self.apply(row)
                applied += 1

        if table_failed and (primary_failed or not self.read_primary):
            status = SampleStatus.failed
        elif errors:
            status = SampleStatus.partial
        else:
            status = SampleStatus.ok

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        report = SampleReport(
            device=device,
            status=status,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            duration_ms=duration_ms,
            main_reading=main_reading,
            applied=applied,
            errors=errors,
        )
        if self.status_table is not None:
            self.status_table.put_report(report)

        logger.debug(
            "Sampled device",
            extra={
                "device": device,
                "status": status.value,
                "applied": applied,
                "error_count": len(errors),
                "duration_ms": duration_ms,
            },
        )
        return report

    def apply(self, measurement: Measurement) -> None:
        series = self.registry.ensure_series(measurement.key, measurement.threshold, measurement.value)
        self.registry.set_value(series, measurement.value)

    def _sample_primary(self, device: str) -> float:
        output = self.command.read_primary(device)
        value = parse_decimal(output)
        series = self.registry.ensure_series(SeriesKey.main_reading(device), value=value)
        self.registry.set_value(series, value)
        return value

    @staticmethod
    def _log_command_error(device: str, exc: CommandError) -> None:
        logger.error(
            "Error running %s",
            " ".join(exc.argv),
            extra={
                "device": device,
                "reason": exc.reason,
                "returncode": exc.returncode,
                "output": exc.output.strip() or None,
            },
        )
