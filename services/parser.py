"""Parsing of ``mget_temp -d <device> -v`` tabular output."""

from __future__ import annotations

import math
import re
from typing import Iterator, Optional, Tuple, Union

from models.records import Measurement, MeasurementKind

# index, sensor name, single-character type, value, threshold
_ROW_PATTERN = re.compile(r"^\s*\d+\s+(\S+)\s+(\S)\s+(\S+)\s+(\S+)")
_DECIMAL_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")


class ReadingDataError(ValueError):
    """A row matched the table layout but carried unusable data."""

    def __init__(self, device: str, sensor: str, reason: str) -> None:
        super().__init__(f"{reason} for sensor {sensor!r} on device {device!r}")
        self.device = device
        self.sensor = sensor
        self.reason = reason


def parse_decimal(text: str) -> float:
    """Parse a plain signed decimal. ``nan``, ``inf`` and exponents are rejected."""
    candidate = text.strip()
    if not _DECIMAL_PATTERN.match(candidate):
        raise ValueError(f"not a decimal number: {text!r}")
    return float(candidate)


def parse_line(device: str, line: str) -> Optional[Measurement]:
    """Turn one table row into a measurement.

    Returns ``None`` for headers, separators, blank and truncated rows.
    Raises :class:`ReadingDataError` when the row has the right shape but an
    unknown type discriminator or a non-numeric value/threshold.
    """
    match = _ROW_PATTERN.match(line)
    if match is None:
        return None

    sensor, code, value_raw, threshold_raw = match.groups()

    try:
        value = parse_decimal(value_raw)
    except ValueError:
        raise ReadingDataError(device, sensor, f"invalid value {value_raw!r}") from None

    try:
        threshold = parse_decimal(threshold_raw)
    except ValueError:
        raise ReadingDataError(device, sensor, f"invalid threshold {threshold_raw!r}") from None

    try:
        kind = MeasurementKind.from_discriminator(code)
    except ValueError:
        raise ReadingDataError(device, sensor, f"unknown measurement type {code!r}") from None

    return Measurement(device=device, sensor=sensor, kind=kind, value=value, threshold=threshold)


ParsedRow = Union[Measurement, ReadingDataError]


def parse_table(device: str, text: str) -> Iterator[Tuple[int, ParsedRow]]:
    """Yield ``(line_number, measurement_or_error)`` for every data row.

    Non-matching lines are skipped; a bad row never stops iteration.
    """
    for line_number, line in enumerate(text.splitlines(), start=1):
        try:
            measurement = parse_line(device, line)
        except ReadingDataError as exc:
            yield line_number, exc
            continue
        if measurement is not None:
            yield line_number, measurement


def threshold_label(threshold: float) -> str:
    """Render a threshold as an unsigned integer, truncating toward zero."""
    if math.isnan(threshold) or threshold <= 0:
        return "0"
    return str(int(threshold))
