"""Process-lifetime table of labeled gauge series backing the scrape endpoint."""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterator, List, Optional

from prometheus_client import CollectorRegistry, Info
from prometheus_client.core import GaugeMetricFamily, Metric

from models.records import MeasurementKind, SeriesKey
from services.parser import threshold_label
from settings import VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricFamilySpec:
    name: str
    documentation: str
    labels: tuple[str, ...]


# Exposition order follows this mapping; main readings are emitted last.
METRIC_FAMILIES: Dict[MeasurementKind, MetricFamilySpec] = {
    MeasurementKind.temperature: MetricFamilySpec(
        name="mget_thermal_diode_temp_celsius",
        documentation=(
            "Temperature from thermal diode in Celsius. The threshold label contains "
            "the maximum allowed temperature as an unsigned integer."
        ),
        labels=("device", "diode", "threshold"),
    ),
    MeasurementKind.voltage: MetricFamilySpec(
        name="mget_thermal_diode_voltage_volts",
        documentation=(
            "Voltage from thermal diode in Volts. The threshold label contains "
            "the maximum allowed voltage as an unsigned integer."
        ),
        labels=("device", "diode", "threshold"),
    ),
    MeasurementKind.main: MetricFamilySpec(
        name="mget_temp",
        documentation=(
            "Main temperature reading from the network adapter "
            "(direct reading from mget_temp -d DEVICE)"
        ),
        labels=("device",),
    ),
}

_KIND_ORDER = {kind: index for index, kind in enumerate(METRIC_FAMILIES)}


class Series:
    """Handle for one series. The threshold is fixed at creation."""

    __slots__ = ("key", "threshold", "_value", "_lock")

    def __init__(self, key: SeriesKey, threshold: Optional[float] = None, value: float = 0.0) -> None:
        self.key = key
        self.threshold = threshold
        self._value = float(value)
        self._lock = Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def label_values(self) -> tuple[str, ...]:
        if self.key.kind is MeasurementKind.main:
            return (self.key.device,)
        threshold = threshold_label(self.threshold if self.threshold is not None else 0.0)
        return (self.key.device, self.key.sensor, threshold)

    def __repr__(self) -> str:
        return f"Series(key={self.key!r}, threshold={self.threshold!r})"


@dataclass(frozen=True)
class SeriesSnapshot:
    key: SeriesKey
    threshold: Optional[float]
    value: float
    labels: Dict[str, str]

    @property
    def metric_name(self) -> str:
        return METRIC_FAMILIES[self.key.kind].name


def _sort_key(series: Series) -> tuple[int, str, str]:
    return (_KIND_ORDER[series.key.kind], series.key.device, series.key.sensor)


class MetricRegistry:
    """Thread-safe create-once/update-many store of gauge series.

    Creating a series takes the table lock; updating one only takes that
    series' own lock, so concurrent device samplers never block each other on
    the update path. Series are never removed.
    """

    def __init__(self) -> None:
        self._series: Dict[SeriesKey, Series] = {}
        self._lock = Lock()

    def ensure_series(
        self,
        key: SeriesKey,
        threshold: Optional[float] = None,
        value: Optional[float] = None,
    ) -> Series:
        """Return the series for ``key``, creating it on first use.

        ``value`` seeds a newly created series before it becomes visible to
        scrapes; it is ignored when the series already exists.
        """
        series = self._series.get(key)
        if series is not None:
            return series

        with self._lock:
            series = self._series.get(key)
            if series is None:
                series = Series(key, threshold, value if value is not None else 0.0)
                self._series[key] = series
                logger.debug(
                    "Registered new series",
                    extra={"device": key.device, "sensor": key.sensor or None, "kind": key.kind.value},
                )
        return series

    def set_value(self, series: Series, value: float) -> None:
        series.set(value)

    def get(self, key: SeriesKey) -> Optional[Series]:
        return self._series.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._series

    def __len__(self) -> int:
        return len(self._series)

    def snapshot(self) -> List[SeriesSnapshot]:
        """Return a sorted point-in-time copy of every series."""

        with self._lock:
            series_list = sorted(self._series.values(), key=_sort_key)

        snapshots: List[SeriesSnapshot] = []
        for series in series_list:
            spec = METRIC_FAMILIES[series.key.kind]
            snapshots.append(
                SeriesSnapshot(
                    key=series.key,
                    threshold=series.threshold,
                    value=series.value,
                    labels=dict(zip(spec.labels, series.label_values())),
                )
            )
        return snapshots

    def collect(self) -> Iterator[Metric]:
        families = {
            kind: GaugeMetricFamily(spec.name, spec.documentation, labels=list(spec.labels))
            for kind, spec in METRIC_FAMILIES.items()
        }
        for snapshot in self.snapshot():
            families[snapshot.key.kind].add_metric(list(snapshot.labels.values()), snapshot.value)

        for family in families.values():
            if family.samples:
                yield family


def build_collector_registry(registry: MetricRegistry) -> CollectorRegistry:
    """Dedicated Prometheus registry exposing only the exporter's series."""
    collector_registry = CollectorRegistry(auto_describe=False)
    collector_registry.register(registry)
    build_info = Info(
        "mget_exporter_build",
        "Exporter version and Python runtime.",
        registry=collector_registry,
    )
    build_info.info({"version": VERSION, "python_version": platform.python_version()})
    return collector_registry
