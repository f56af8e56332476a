from __future__ import annotations

from threading import Lock
from typing import Dict, Optional

from app.schemas import SampleReport


class SampleStatusTable:
    """Latest sampling report per device, kept for the status page and API."""

    def __init__(self) -> None:
        self._items: Dict[str, SampleReport] = {}
        self._lock = Lock()

    def put_report(self, report: SampleReport) -> None:
        with self._lock:
            current = self._items.get(report.device)
            # overlapping passes for a slow device may finish out of order
            if current is not None and current.started_at > report.started_at:
                return
            self._items[report.device] = report.model_copy(deep=True)

    def get_report(self, device: str) -> Optional[SampleReport]:
        with self._lock:
            item = self._items.get(device)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[SampleReport]:
        """Return deep copies of all stored reports, ordered by device."""

        with self._lock:
            return [self._items[device].model_copy(deep=True) for device in sorted(self._items)]
