import time
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.metric_registry import MetricRegistry
from datastore.sample_status import SampleStatusTable
from services.commands import CommandError
from services.exporter import ExporterService, build_default_exporter
from services.sampler import DeviceSampler
from settings import get_settings

TABLE = """\
Index  Name   Type  Value  Threshold
1      iopx   T     45.0   90
2      vdd    V     0.85   1.2
3      fan    X     12.0   50
"""


class StubCommand:
    def read_primary(self, device: str) -> str:
        if device == "B":
            raise CommandError(["mget_temp", "-d", device], "exit status 1", returncode=1)
        return "44\n"

    def read_table(self, device: str) -> str:
        if device == "B":
            raise CommandError(["mget_temp", "-d", device, "-v"], "exit status 1", returncode=1)
        return TABLE


def _wait_for_reports(exporter: ExporterService, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if all(exporter.status_table.get_report(device) for device in exporter.devices):
            return
        time.sleep(0.02)
    pytest.fail("Initial sampling pass did not complete")


@pytest.fixture
def exporter_factory(monkeypatch):
    built: list[ExporterService] = []

    def build_test_exporter() -> ExporterService:
        if built:
            return built[0]
        sampler = DeviceSampler(
            command=StubCommand(),
            registry=MetricRegistry(),
            status_table=SampleStatusTable(),
        )
        exporter = ExporterService(
            devices=["A", "B"],
            sampler=sampler,
            interval=60,
            workers=2,
        )
        built.append(exporter)
        return exporter

    def cache_clear() -> None:
        while built:
            built.pop().shutdown()

    build_test_exporter.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_exporter", build_test_exporter)
    monkeypatch.setattr("app.api.build_default_exporter", build_test_exporter)
    monkeypatch.setattr("app.web.build_default_exporter", build_test_exporter)
    yield build_test_exporter
    cache_clear()


@pytest.fixture
def api_client(exporter_factory) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        _wait_for_reports(exporter_factory())
        yield client


def test_lifespan_starts_and_stops_polling(exporter_factory) -> None:
    app = create_app()

    with TestClient(app):
        exporter = exporter_factory()
        assert exporter.scheduler.running is True

    assert exporter.scheduler.running is False
    assert exporter.scheduler.executor._shutdown is True


def test_lifespan_clears_default_factory_cache(monkeypatch) -> None:
    monkeypatch.setenv("MGET_DEVICES", "dev-x")
    monkeypatch.setenv("MGET_TEMP_BINARY", "/nonexistent/mget_temp")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "60")
    get_settings.cache_clear()
    build_default_exporter.cache_clear()
    try:
        with TestClient(create_app()):
            during = build_default_exporter()
            assert during.devices == ["dev-x"]
        after = build_default_exporter()
        assert after is not during
        after.shutdown()
    finally:
        build_default_exporter.cache_clear()
        get_settings.cache_clear()


def test_metrics_exposes_parsed_series(api_client: TestClient) -> None:
    response = api_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert 'mget_thermal_diode_temp_celsius{device="A",diode="iopx",threshold="90"} 45.0' in body
    assert 'mget_thermal_diode_voltage_volts{device="A",diode="vdd",threshold="1"} 0.85' in body
    assert 'mget_temp{device="A"} 44.0' in body
    assert 'diode="fan"' not in body
    assert 'device="B"' not in body


def test_root_page_links_metrics_and_lists_devices(api_client: TestClient) -> None:
    response = api_client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'href="/metrics"' in response.text
    assert "mget_exporter" in response.text
    assert 'class="partial">partial' in response.text
    assert 'class="failed">failed' in response.text


def test_devices_endpoint_reports_each_device(api_client: TestClient) -> None:
    response = api_client.get("/devices")

    assert response.status_code == 200
    payload = {item["device"]: item for item in response.json()}
    assert payload["A"]["status"] == "partial"
    assert payload["A"]["applied"] == 2
    assert payload["A"]["main_reading"] == 44.0
    assert payload["A"]["errors"][0]["line_number"] == 4
    assert payload["B"]["status"] == "failed"


def test_device_detail_includes_series(api_client: TestClient) -> None:
    response = api_client.get("/devices/A")

    assert response.status_code == 200
    payload = response.json()
    metrics = {(item["metric"], item["labels"].get("diode")) for item in payload["series"]}
    assert metrics == {
        ("mget_thermal_diode_temp_celsius", "iopx"),
        ("mget_thermal_diode_voltage_volts", "vdd"),
        ("mget_temp", None),
    }


def test_unknown_device_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/devices/nope")

    assert response.status_code == 404
    assert "nope" in response.json()["detail"]


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
