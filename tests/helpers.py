"""Reusable test utilities and recording stubs for the test suite."""

import time

from pppoe_link_diagnostics.link_check.probes import Probe
from pppoe_link_diagnostics.link_check.types import (
    CommandResult,
    ErrorKind,
    ProbeKind,
    ProbeOutcome,
    SampleSeries,
    SamplingConfig,
)


class RecordingLogger:
    """In-memory logger capturing log messages and setup calls."""

    def __init__(self):
        self.messages: list[str] = []
        self.setup_calls: list[bool] = []

    def setup(self, verbose: bool, log_file=None) -> None:
        self.setup_calls.append(verbose)

    def log(self, msg: str) -> None:
        self.messages.append(msg)

    def debug(self, msg: str, *args) -> None:  # pragma: no cover - simple passthrough
        self.messages.append(f"DEBUG:{msg % args if args else msg}")


class StubShell:
    """Return canned results keyed by command tuple and record every call."""

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default or CommandResult(cmd=[], returncode=1, stdout="", stderr="missing response")
        self.calls: list[tuple[list[str], float]] = []

    def run_cmd(self, cmd: list[str], timeout: float = 5) -> CommandResult:
        self.calls.append((cmd, timeout))
        return self.responses.get(tuple(cmd), self.default)


def ok(latency_ms: float = 10.0) -> ProbeOutcome:
    return ProbeOutcome(timestamp=time.time(), success=True, latency_ms=latency_ms)


def fail(kind: ErrorKind = ErrorKind.TIMEOUT) -> ProbeOutcome:
    return ProbeOutcome(timestamp=time.time(), success=False, error_kind=kind)


def series_from_pattern(pattern: str, latency_ms: float = 10.0, kind: ProbeKind = ProbeKind.ICMP) -> SampleSeries:
    """Build a series from a string such as ``"..xx."`` ('.' ok, 'x' failed)."""
    outcomes = [ok(latency_ms) if char == "." else fail() for char in pattern]
    return SampleSeries(
        target="192.0.2.1",
        kind=kind,
        config=SamplingConfig(count=len(outcomes), duration_s=None, interval_ms=0, timeout_ms=1000),
        outcomes=outcomes,
    )


class ScriptedProbe(Probe):
    """Probe replaying a fixed sequence of outcomes or exceptions."""

    kind = ProbeKind.ICMP

    def __init__(self, script, target: str = "192.0.2.1", kind: ProbeKind = ProbeKind.ICMP):
        super().__init__(target, timeout_ms=1000)
        self.kind = kind
        self.script = list(script)
        self.calls = 0

    def run(self) -> ProbeOutcome:
        item = self.script[self.calls % len(self.script)]
        self.calls += 1
        if isinstance(item, BaseException):
            raise item
        return item
