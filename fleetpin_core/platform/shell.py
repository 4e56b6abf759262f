from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Any, Callable

from fleetpin_core.errors import RecoverableError


@dataclass(frozen=True)
class ShellResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class AdbShell:
    """Runs ``adb shell`` commands against one device with a bounded timeout."""

    def __init__(
        self,
        adb_path: str = "adb",
        serial: str | None = None,
        *,
        timeout_s: float = 15.0,
        runner: Callable[..., Any] = subprocess.run,
    ) -> None:
        self.adb_path = adb_path
        self.serial = serial
        self.timeout_s = timeout_s
        self._runner = runner

    def _base(self) -> list[str]:
        cmd = [self.adb_path]
        if self.serial:
            cmd.extend(["-s", self.serial])
        return cmd

    def run(self, *args: str, timeout_s: float | None = None) -> ShellResult:
        cmd = [*self._base(), "shell", *args]
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise RecoverableError(
                f"adb shell {' '.join(args)} timed out after {timeout:.2f}s"
            ) from exc
        except FileNotFoundError as exc:
            raise RecoverableError(f"Missing required binary: {self.adb_path}") from exc
        except OSError as exc:
            raise RecoverableError(f"adb shell failed: {exc}") from exc
        return ShellResult(
            returncode=int(result.returncode),
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
