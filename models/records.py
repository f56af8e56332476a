"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple


class MeasurementKind(str, Enum):
    """What a series measures. ``main`` is the per-device primary reading."""

    temperature = "temperature"
    voltage = "voltage"
    main = "main"

    @classmethod
    def from_discriminator(cls, code: str) -> "MeasurementKind":
        try:
            return _DISCRIMINATORS[code]
        except KeyError:
            raise ValueError(f"unknown measurement type {code!r}") from None


_DISCRIMINATORS = {
    "T": MeasurementKind.temperature,
    "V": MeasurementKind.voltage,
}


class SeriesKey(NamedTuple):
    """Identity of one metric series."""

    device: str
    sensor: str
    kind: MeasurementKind

    @classmethod
    def main_reading(cls, device: str) -> "SeriesKey":
        return cls(device=device, sensor="", kind=MeasurementKind.main)


@dataclass(frozen=True, slots=True)
class Measurement:
    """A single sensor reading parsed from one row of ``mget_temp -v`` output."""

    device: str
    sensor: str
    kind: MeasurementKind
    value: float
    threshold: float

    @property
    def key(self) -> SeriesKey:
        return SeriesKey(self.device, self.sensor, self.kind)
