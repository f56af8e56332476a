"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SampleStatus(str, Enum):
    """Outcome of one sampling pass for a device."""

    ok = "ok"
    partial = "partial"
    failed = "failed"


class SampleStage(str, Enum):
    primary = "primary"
    table = "table"
    line = "line"


class SampleError(BaseModel):
    """A problem encountered during a sampling pass."""

    stage: SampleStage
    reason: str
    line_number: Optional[int] = Field(default=None, ge=1)


class SampleReport(BaseModel):
    """Summary of the latest sampling pass for one device."""

    device: str
    status: SampleStatus
    started_at: datetime
    finished_at: datetime
    duration_ms: int = Field(..., ge=0)
    main_reading: Optional[float] = Field(
        default=None, description="Value from the dedicated primary reading, if it succeeded."
    )
    applied: int = Field(default=0, ge=0, description="Sensor measurements written to the registry.")
    errors: List[SampleError] = Field(default_factory=list)


class SeriesView(BaseModel):
    """One exported series as seen by a scrape."""

    metric: str
    labels: Dict[str, str]
    value: float


class DeviceDetail(BaseModel):
    device: str
    report: Optional[SampleReport] = None
    series: List[SeriesView] = Field(default_factory=list)
