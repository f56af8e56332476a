from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

from app.schemas import SampleStage, SampleStatus
from datastore.metric_registry import MetricRegistry
from models.records import MeasurementKind, SeriesKey
from services.commands import CommandError, DiagnosticCommand, run_command
from services.sampler import DeviceSampler

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")


def _script(tmp_path: Path, body: str, name: str = "mget_temp") -> Path:
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def test_diagnostic_command_passes_device_and_verbose_flag(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "$@"\n')
    command = DiagnosticCommand(binary=str(binary), timeout=5)

    assert command.read_primary("/dev/mst/mt4119_pciconf0").strip() == "-d /dev/mst/mt4119_pciconf0"
    assert command.read_table("mt4119_pciconf0").strip() == "-d mt4119_pciconf0 -v"


def test_non_zero_exit_captures_combined_output(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "partial"\necho "-E- device busy" >&2\nexit 3\n')

    with pytest.raises(CommandError) as excinfo:
        run_command([str(binary), "-d", "dev"], timeout=5)

    error = excinfo.value
    assert error.returncode == 3
    assert "partial" in error.output
    assert "-E- device busy" in error.output
    assert error.argv == [str(binary), "-d", "dev"]


def test_missing_binary_is_a_command_error(tmp_path: Path) -> None:
    with pytest.raises(CommandError) as excinfo:
        run_command([str(tmp_path / "does-not-exist")])

    assert excinfo.value.reason == "executable not found"
    assert excinfo.value.returncode is None


def test_timeout_is_a_command_error(tmp_path: Path) -> None:
    binary = _script(tmp_path, "exec sleep 5\n")

    with pytest.raises(CommandError) as excinfo:
        run_command([str(binary)], timeout=0.2)

    assert "timed out" in excinfo.value.reason


def test_non_executable_binary_is_a_command_error(tmp_path: Path) -> None:
    path = tmp_path / "mget_temp"
    path.write_text("#!/bin/sh\necho 1\n")

    with pytest.raises(CommandError) as excinfo:
        run_command([str(path)])

    assert excinfo.value.reason == "permission denied"


def test_unrunnable_binary_format_is_a_command_error(tmp_path: Path) -> None:
    path = tmp_path / "mget_temp"
    path.write_text("not a script\n")
    path.chmod(0o755)

    with pytest.raises(CommandError) as excinfo:
        run_command([str(path), "-d", "dev"])

    assert excinfo.value.reason == "Exec format error"
    assert excinfo.value.returncode is None


def test_unrunnable_binary_does_not_stop_the_table_stage(tmp_path: Path) -> None:
    path = tmp_path / "mget_temp"
    path.write_text("not a script\n")
    path.chmod(0o755)
    sampler = DeviceSampler(command=DiagnosticCommand(binary=str(path), timeout=5), registry=MetricRegistry())

    report = sampler.sample("A")

    assert report.status is SampleStatus.failed
    assert [error.stage for error in report.errors] == [SampleStage.primary, SampleStage.table]


def test_undecodable_output_keeps_the_readable_rows(tmp_path: Path) -> None:
    binary = _script(
        tmp_path,
        'if [ "$3" = "-v" ]; then\n'
        "  printf '1 iopx T 45.0 90\\n2 vdd V 0.\\377 2\\n3 core T 50.5 100\\n'\n"
        "else\n"
        "  echo 44\n"
        "fi\n",
    )
    registry = MetricRegistry()
    sampler = DeviceSampler(command=DiagnosticCommand(binary=str(binary), timeout=5), registry=registry)

    assert "\ufffd" in run_command([str(binary), "-d", "A", "-v"], timeout=5)

    report = sampler.sample("A")

    assert report.status is SampleStatus.partial
    assert report.applied == 2
    assert [(error.stage, error.line_number) for error in report.errors] == [(SampleStage.line, 2)]
    assert registry.get(SeriesKey("A", "iopx", MeasurementKind.temperature)).value == 45.0
    assert registry.get(SeriesKey("A", "core", MeasurementKind.temperature)).value == 50.5
    assert SeriesKey("A", "vdd", MeasurementKind.voltage) not in registry
