"""Thin wrappers around the external diagnostic tools."""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence


class CommandError(RuntimeError):
    """An external command could not be run or exited unsuccessfully."""

    def __init__(
        self,
        argv: Sequence[str],
        reason: str,
        output: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(f"{' '.join(argv)}: {reason}")
        self.argv = list(argv)
        self.reason = reason
        self.output = output
        self.returncode = returncode


def run_command(argv: Sequence[str], timeout: Optional[float] = None) -> str:
    """Run ``argv`` and return its combined stdout/stderr.

    Undecodable bytes are replaced rather than raised. Raises
    :class:`CommandError` when the binary cannot be started, the timeout
    expires or the exit status is non-zero.
    """
    try:
        proc = subprocess.run(
            list(argv),
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError:
        raise CommandError(argv, "executable not found") from None
    except PermissionError:
        raise CommandError(argv, "permission denied") from None
    except OSError as exc:
        raise CommandError(argv, exc.strerror or str(exc)) from None
    except subprocess.TimeoutExpired as exc:
        output = exc.output or ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        raise CommandError(argv, f"timed out after {timeout}s", output=output) from None

    if proc.returncode != 0:
        raise CommandError(
            argv,
            f"exit status {proc.returncode}",
            output=proc.stdout or "",
            returncode=proc.returncode,
        )
    return proc.stdout or ""


class DiagnosticCommand:
    """Invokes ``mget_temp`` for a single device."""

    def __init__(self, binary: str = "mget_temp", timeout: Optional[float] = 8.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def read_primary(self, device: str) -> str:
        return run_command([self.binary, "-d", device], timeout=self.timeout)

    def read_table(self, device: str) -> str:
        return run_command([self.binary, "-d", device, "-v"], timeout=self.timeout)
