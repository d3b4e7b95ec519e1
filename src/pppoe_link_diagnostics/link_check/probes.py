"""Bounded connectivity probes producing ``ProbeOutcome`` samples."""

from __future__ import annotations

import errno
import re
import socket
import time

from pppoe_link_diagnostics.link_check.errors import ProbeFailure
from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER
from pppoe_link_diagnostics.link_check.shell import DEFAULT_SHELL, ShellRunner
from pppoe_link_diagnostics.link_check.types import ErrorKind, ProbeKind, ProbeOutcome

_PING_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms")

_UNREACHABLE_ERRNOS = {errno.ENETUNREACH, errno.EHOSTUNREACH, errno.EHOSTDOWN}


class Probe:
    """One bounded connectivity test against a single target."""

    kind: ProbeKind

    def __init__(self, target: str, timeout_ms: int = 2000) -> None:
        self.target = target
        self.timeout_ms = timeout_ms

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def run(self) -> ProbeOutcome:  # pragma: no cover - interface contract
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.target!r}, timeout_ms={self.timeout_ms})"


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map a probe exception onto the sample error taxonomy."""
    if isinstance(exc, ProbeFailure):
        return exc.error_kind
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return ErrorKind.REFUSED
    if isinstance(exc, ConnectionResetError):
        return ErrorKind.RESET
    if isinstance(exc, socket.gaierror):
        return ErrorKind.UNREACHABLE
    if isinstance(exc, OSError) and exc.errno in _UNREACHABLE_ERRNOS:
        return ErrorKind.UNREACHABLE
    return ErrorKind.UNKNOWN


def run_probe(probe: Probe) -> ProbeOutcome:
    """Run ``probe`` and convert any raised error into a failed sample."""
    try:
        return probe.run()
    except Exception as exc:  # noqa: BLE001 - every probe error becomes a failed sample
        kind = classify_exception(exc)
        DEFAULT_LOGGER.debug("Probe %r failed: %s (%s)", probe, exc, kind.value)
        return ProbeOutcome(
            timestamp=time.time(),
            success=False,
            latency_ms=None,
            error_kind=kind,
            detail=str(exc),
        )


class IcmpProbe(Probe):
    """Single echo request sent through the system ``ping`` binary."""

    kind = ProbeKind.ICMP

    def __init__(self, target: str, timeout_ms: int = 2000, *, shell: ShellRunner = DEFAULT_SHELL) -> None:
        super().__init__(target, timeout_ms)
        self.shell = shell

    def run(self) -> ProbeOutcome:
        wait_s = max(1, round(self.timeout_s))
        started = time.monotonic()
        res = self.shell.run_cmd(
            ["ping", "-n", "-c", "1", "-W", str(wait_s), self.target],
            timeout=wait_s + 1,
        )
        elapsed_ms = (time.monotonic() - started) * 1000.0

        if res.returncode == 0:
            match = _PING_TIME_RE.search(res.stdout)
            latency = float(match.group(1)) if match else round(elapsed_ms, 2)
            return ProbeOutcome(timestamp=time.time(), success=True, latency_ms=latency)

        output = f"{res.stdout}\n{res.stderr}".lower()
        if "unreachable" in output:
            raise ProbeFailure(ErrorKind.UNREACHABLE, f"{self.target} unreachable")
        if res.returncode == 1 or "timed out" in output:
            raise ProbeFailure(ErrorKind.TIMEOUT, f"no echo reply from {self.target}")
        raise ProbeFailure(ErrorKind.UNKNOWN, res.stderr.strip() or f"ping rc={res.returncode}")


class TcpProbe(Probe):
    """TCP connect to ``host:port``; latency is the handshake time."""

    kind = ProbeKind.TCP

    def __init__(self, target: str, port: int = 443, timeout_ms: int = 2000) -> None:
        super().__init__(target, timeout_ms)
        self.port = port

    def run(self) -> ProbeOutcome:
        started = time.monotonic()
        with socket.create_connection((self.target, self.port), timeout=self.timeout_s):
            elapsed_ms = (time.monotonic() - started) * 1000.0
        return ProbeOutcome(timestamp=time.time(), success=True, latency_ms=round(elapsed_ms, 2))

    def __repr__(self) -> str:
        return f"TcpProbe({self.target!r}, port={self.port}, timeout_ms={self.timeout_ms})"


class DnsProbe(Probe):
    """Resolve a name through the system resolver via ``getent ahosts``."""

    kind = ProbeKind.DNS

    def __init__(self, target: str, timeout_ms: int = 3000, *, shell: ShellRunner = DEFAULT_SHELL) -> None:
        super().__init__(target, timeout_ms)
        self.shell = shell

    def run(self) -> ProbeOutcome:
        started = time.monotonic()
        res = self.shell.run_cmd(["getent", "ahosts", self.target], timeout=self.timeout_s)
        elapsed_ms = (time.monotonic() - started) * 1000.0

        if "timed out" in res.stderr:
            raise ProbeFailure(ErrorKind.TIMEOUT, f"lookup of {self.target} timed out")
        if res.returncode != 0 or not res.stdout.strip():
            raise ProbeFailure(ErrorKind.UNREACHABLE, f"{self.target} did not resolve (rc={res.returncode})")
        return ProbeOutcome(timestamp=time.time(), success=True, latency_ms=round(elapsed_ms, 2))


def make_probe(kind: ProbeKind, target: str, timeout_ms: int, *, port: int = 443) -> Probe:
    """Build a probe of ``kind`` for ``target``."""
    if kind is ProbeKind.ICMP:
        return IcmpProbe(target, timeout_ms)
    if kind is ProbeKind.TCP:
        return TcpProbe(target, port=port, timeout_ms=timeout_ms)
    return DnsProbe(target, timeout_ms)
