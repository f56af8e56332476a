"""Where the list of devices to poll comes from."""

from __future__ import annotations

import logging
import platform
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from services.commands import CommandError, run_command
from settings import Settings

logger = logging.getLogger(__name__)

_DEVICES_HEADER = "MST devices:"
_DEVICE_NAME_PATTERN = re.compile(r"^mt\d+_pci(?:conf|_cr)\d+(?:\.\d+)?$")
_LINUX_PREFIX = "/dev/mst/"


class DeviceConfigError(RuntimeError):
    """The device list could not be determined. Fatal at startup."""


def _unique(devices: Iterable[str]) -> List[str]:
    seen: dict[str, None] = {}
    for device in devices:
        seen.setdefault(device, None)
    return list(seen)


def read_devices_config(path: Path | str) -> List[str]:
    """Read one device per line, skipping blanks and ``#`` comments."""
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DeviceConfigError(f"Failed to load {config_path}: {exc}") from exc

    devices = []
    for line in text.splitlines():
        candidate = line.strip()
        if candidate and not candidate.startswith("#"):
            devices.append(candidate)
    return devices


def parse_device_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _extract_device(row: str, system: str) -> Optional[str]:
    tokens = row.split()
    if not tokens:
        return None
    token = tokens[0]
    if system == "Windows":
        return token if _DEVICE_NAME_PATTERN.match(token) else None
    if not token.startswith(_LINUX_PREFIX):
        return None
    return token if _DEVICE_NAME_PATTERN.match(token[len(_LINUX_PREFIX):]) else None


def parse_mst_status(output: str, system: Optional[str] = None) -> List[str]:
    """Extract device names from ``mst status`` output.

    Rows follow the ``MST devices:`` header and its dash separator. Linux
    rows start with a ``/dev/mst/`` path followed by a description and may be
    followed by indented detail lines; Windows rows are bare device names.
    """
    system = system or platform.system()
    devices: List[str] = []
    in_section = False
    for line in output.splitlines():
        stripped = line.strip()
        if not in_section:
            if stripped == _DEVICES_HEADER:
                in_section = True
            continue
        if not stripped:
            if devices:
                break
            continue
        if set(stripped) == {"-"}:
            continue
        device = _extract_device(stripped, system)
        if device is not None:
            devices.append(device)
        elif stripped.endswith(":"):
            # next section header
            break
    return _unique(devices)


def discover_devices(
    mst_binary: str = "mst",
    runner: Callable[[Sequence[str]], str] = run_command,
    system: Optional[str] = None,
) -> List[str]:
    try:
        output = runner([mst_binary, "status"])
    except CommandError as exc:
        raise DeviceConfigError(f"Device discovery failed: {exc}") from exc
    devices = parse_mst_status(output, system=system)
    logger.info("Discovered devices", extra={"devices": len(devices)})
    return devices


def resolve_devices(
    settings: Settings,
    devices: Optional[Sequence[str]] = None,
    discover: Optional[bool] = None,
    config_path: Optional[str] = None,
    runner: Callable[[Sequence[str]], str] = run_command,
) -> List[str]:
    """Pick the device list: explicit, then ``MGET_DEVICES``, then discovery, then the config file."""
    if devices:
        resolved = list(devices)
        source = "arguments"
    elif settings.devices:
        resolved = parse_device_list(settings.devices)
        source = "environment"
    elif (settings.discover if discover is None else discover):
        resolved = discover_devices(settings.mst_binary, runner=runner)
        source = "discovery"
    else:
        path = config_path or settings.devices_config_path
        resolved = read_devices_config(path)
        source = str(path)

    resolved = _unique(resolved)
    if not resolved:
        raise DeviceConfigError(f"No devices configured (source: {source})")
    return resolved
