from __future__ import annotations

from typing import List

import httpx
import typer
from prometheus_client.parser import text_string_to_metric_families

from cli.config import CLIConfig

_METRIC_PREFIX = "mget_"
_SELF_PREFIX = "mget_exporter_"


class ScrapeClient:
    """Minimal HTTP client for a running exporter."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_metrics(self) -> str:
        try:
            response = self._client.get("/metrics")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise typer.BadParameter(
                f"Exporter returned {exc.response.status_code} for /metrics."
            ) from exc
        except httpx.RequestError as exc:
            raise typer.BadParameter(
                f"Could not reach exporter at {self._config.base_url}: {exc}"
            ) from exc
        return response.text

    def fetch_series(self) -> List[dict]:
        """Return ``{"metric", "labels", "value"}`` rows for every mget sample."""
        rows: List[dict] = []
        for family in text_string_to_metric_families(self.fetch_metrics()):
            if not family.name.startswith(_METRIC_PREFIX) or family.name.startswith(_SELF_PREFIX):
                continue
            for sample in family.samples:
                rows.append(
                    {"metric": sample.name, "labels": dict(sample.labels), "value": sample.value}
                )
        return rows
