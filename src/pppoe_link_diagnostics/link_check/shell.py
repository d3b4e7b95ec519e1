"""Shell helpers used by the probe and adapter collaborators."""

from __future__ import annotations

import shlex
import subprocess

from pppoe_link_diagnostics.link_check.logging_utils import (
    DEFAULT_LOGGER,
    LoggingManager,
)
from pppoe_link_diagnostics.link_check.types import CommandResult

# Return code used when a command could not be started or ran past its timeout.
SPAWN_FAILED_RC = 255


class ShellRunner:
    """Execute shell commands with consistent logging."""

    def __init__(self, *, logger: LoggingManager = DEFAULT_LOGGER) -> None:
        self.logger = logger

    def cmd_str(self, cmd: list[str]) -> str:
        """Return a shell-escaped string for display."""
        return " ".join(shlex.quote(part) for part in cmd)

    def run_cmd(
        self,
        cmd: list[str],
        timeout: float = 5,
    ) -> CommandResult:
        """Run command and capture stdout/stderr."""
        self.logger.debug(f"Running: {self.cmd_str(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
                text=True,
            )
        except subprocess.TimeoutExpired as exc:
            self.logger.debug(f"Command timed out after {timeout}s: {self.cmd_str(cmd)}")
            return CommandResult(
                cmd=cmd,
                returncode=SPAWN_FAILED_RC,
                stdout="",
                stderr=f"timed out: {exc}",
            )
        except OSError as exc:
            self.logger.debug(f"Command failed to start: {exc}")
            return CommandResult(
                cmd=cmd,
                returncode=SPAWN_FAILED_RC,
                stdout="",
                stderr=str(exc),
            )

        self.logger.debug(
            f"Command rc={proc.returncode} stdout={proc.stdout!r} stderr={proc.stderr!r}",
        )
        return CommandResult(
            cmd=cmd,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )


DEFAULT_SHELL = ShellRunner()
