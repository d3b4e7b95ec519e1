"""Run the diagnostic phases in order and feed every result into the ledger."""

from __future__ import annotations

import dataclasses
import os
import platform
import threading
from collections.abc import Callable

from pppoe_link_diagnostics.config import DiagnosticsConfig
from pppoe_link_diagnostics.link_check.classifier import classify, describe, grade
from pppoe_link_diagnostics.link_check.collaborators import (
    AdapterManager,
    SessionManager,
    default_route_interface,
    describe_auth_error,
    missing_tools,
    traceroute_hops,
)
from pppoe_link_diagnostics.link_check.diagnostics import DiagnosisEngine
from pppoe_link_diagnostics.link_check.errors import (
    CollaboratorError,
    EngineInvariantViolation,
    PhaseFailure,
)
from pppoe_link_diagnostics.link_check.ledger import HealthLedger
from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER, LoggingManager
from pppoe_link_diagnostics.link_check.pool import run_bounded
from pppoe_link_diagnostics.link_check.probes import Probe, make_probe
from pppoe_link_diagnostics.link_check.sampler import Sampler
from pppoe_link_diagnostics.link_check.stats import aggregate
from pppoe_link_diagnostics.link_check.types import (
    Category,
    CheckRecord,
    DiagnosisResult,
    ProbeKind,
    SampleSeries,
    SamplingConfig,
    SessionState,
    Severity,
    Stats,
)

ProbeFactory = Callable[..., Probe]


@dataclasses.dataclass(frozen=True)
class Check:
    name: str
    order: int
    category: Category


@dataclasses.dataclass(frozen=True)
class Phase:
    name: str
    checks: tuple[Check, ...]
    # State entered when a collaborator error aborts this phase; None means the
    # phase is not a prerequisite and later phases still run.
    failure_state: SessionState | None = None


PHASES: tuple[Phase, ...] = (
    Phase(
        "system",
        (
            Check("Operating system", 10, Category.SYSTEM),
            Check("Root privileges", 10, Category.SYSTEM),
            Check("Diagnostic tools", 10, Category.SYSTEM),
        ),
    ),
    Phase(
        "adapter",
        (
            Check("Network adapter", 20, Category.ADAPTER),
            Check("Link state", 20, Category.LINK),
            Check("Link speed", 20, Category.LINK),
            Check("ONT reachability", 20, Category.REMOTE_TERMINATION),
        ),
        failure_state=SessionState.LINK_DOWN,
    ),
    Phase(
        "authentication",
        (
            Check("PPP credentials", 30, Category.CREDENTIALS),
            Check("PPPoE authentication", 30, Category.AUTH),
        ),
        failure_state=SessionState.AUTH_FAILED,
    ),
    Phase(
        "session",
        (
            Check("PPP interface", 40, Category.SESSION_INTERFACE),
            Check("PPP address", 40, Category.SESSION_INTERFACE),
            Check("PPP next hop", 40, Category.SESSION_INTERFACE),
            Check("Default route", 40, Category.SESSION_INTERFACE),
        ),
        failure_state=SessionState.AUTH_FAILED,
    ),
    Phase(
        "connectivity",
        (
            Check("Ping public IP", 50, Category.CONNECTIVITY),
            Check("DNS lookup", 50, Category.DNS),
            Check("HTTPS connect", 50, Category.CONNECTIVITY),
        ),
    ),
    Phase(
        "extended",
        (
            Check("Stability run", 60, Category.STABILITY),
            Check("Latency jitter", 60, Category.STABILITY),
            Check("DNS stability", 60, Category.DNS),
            Check("Connection rate", 60, Category.CAPACITY),
            Check("Connection capacity", 60, Category.CAPACITY),
        ),
    ),
    Phase("traceroute", (Check("Traceroute", 70, Category.ROUTE),)),
)

CHECKS: dict[str, Check] = {check.name: check for phase in PHASES for check in phase.checks}

UNASSIGNED_NEXT_HOPS = {None, "", "0.0.0.0"}


def grade_next_hop(next_hop: str | None) -> tuple[Severity, str]:
    """Classify the session interface's next hop.

    An unassigned next hop is reported as a warning, never a failure: the
    point-to-point route still carries traffic without a peer address.
    """
    if next_hop in UNASSIGNED_NEXT_HOPS:
        return Severity.WARN, "no next-hop address assigned; relying on the point-to-point route"
    return Severity.OK, f"next hop {next_hop}"


def running_as_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


@dataclasses.dataclass(frozen=True)
class SessionReport:
    state: SessionState
    records: tuple[CheckRecord, ...]
    overall: Severity
    result: DiagnosisResult
    stats: dict[str, Stats]


class LinkDiagnosisSession:
    """Sequence the phases of one diagnostic session.

    Phases run on the calling thread. A failed prerequisite moves the session
    into LINK_DOWN or AUTH_FAILED and fills every remaining check with an N/A
    record instead of aborting. The diagnosis engine runs once, at the end.
    """

    def __init__(
        self,
        config: DiagnosticsConfig,
        *,
        adapters: AdapterManager | None = None,
        session: SessionManager | None = None,
        probe_factory: ProbeFactory = make_probe,
        sampler: Sampler | None = None,
        engine: DiagnosisEngine | None = None,
        logger: LoggingManager = DEFAULT_LOGGER,
        cancel: threading.Event | None = None,
        tracer: Callable[[str], list[str]] = traceroute_hops,
        tool_check: Callable[[], list[str]] = missing_tools,
        privilege_check: Callable[[], bool] = running_as_root,
        route_lookup: Callable[[], str | None] = default_route_interface,
    ) -> None:
        self.config = config
        self.adapters = adapters or AdapterManager(logger=logger)
        self.session = session or SessionManager(
            logger=logger,
            peers_dir=config.session.peers_dir,
            secrets_files=tuple(config.session.secrets_files),
            auth_timeout_s=config.session.auth_timeout_s,
        )
        self.probe_factory = probe_factory
        self.sampler = sampler or Sampler()
        self.engine = engine or DiagnosisEngine()
        self.logger = logger
        self.cancel = cancel or threading.Event()
        self.tracer = tracer
        self.tool_check = tool_check
        self.privilege_check = privilege_check
        self.route_lookup = route_lookup

        self.ledger = HealthLedger()
        self.state = SessionState.NOT_STARTED
        self.iface: str | None = None
        self._stats: dict[str, Stats] = {}

    def run(self) -> SessionReport:
        if len(self.ledger):
            raise EngineInvariantViolation("a diagnosis session can only run once")

        for phase in PHASES:
            if self.cancel.is_set():
                self.logger.log("[INFO] Cancelled; skipping remaining checks.")
                self._fill_remaining("cancelled")
                break

            self.logger.log(f"[INFO] Running {phase.name} checks...")
            try:
                getattr(self, f"_phase_{phase.name}")()
            except PhaseFailure as exc:
                self.logger.log(f"[INFO] Skipping remaining checks: {exc.reason}")
                self._fill_remaining(exc.reason)
                break
            except CollaboratorError as exc:
                self._record(exc.check_name, Severity.FAIL, exc.message)
                if phase.failure_state is not None:
                    self.state = phase.failure_state
                    self._fill_remaining(f"{exc.check_name} could not be checked")
                    break
                self._fill_remaining(f"{exc.check_name} could not be checked", phase=phase)

        result = self.engine.diagnose(self.ledger, self._stats)
        return SessionReport(
            state=self.state,
            records=tuple(self.ledger.ordered()),
            overall=self.ledger.overall_status(),
            result=result,
            stats=dict(self._stats),
        )

    def _record(self, name: str, severity: Severity, text: str, stats: Stats | None = None) -> None:
        check = CHECKS[name]
        self.ledger.record(
            name,
            text,
            check.order,
            severity=severity,
            category=check.category,
            stats=stats,
        )
        self.logger.log(f"[{severity.value}] {name}: {text}")

    def _fill_remaining(self, reason: str, phase: Phase | None = None) -> None:
        phases = (phase,) if phase is not None else PHASES
        for current in phases:
            for check in current.checks:
                if check.name not in self.ledger:
                    self._record(check.name, Severity.SKIPPED, f"N/A ({reason})")

    def _call(self, check_name: str, fn: Callable, *args):
        """Invoke a collaborator, converting any error into ``CollaboratorError``."""
        try:
            return fn(*args)
        except Exception as exc:  # noqa: BLE001 - collaborator errors become FAIL records
            raise CollaboratorError(check_name, f"{type(exc).__name__}: {exc}") from exc

    def _probe(self, kind: ProbeKind, target: str, port: int | None = None) -> Probe:
        port = port if port is not None else self.config.targets.tcp_port
        return self.probe_factory(kind, target, self.config.sampling.probe_timeout_ms, port=port)

    def _progress(self, name: str) -> Callable[[int, float], None]:
        def report(taken: int, rate: float) -> None:
            self.logger.log(f"[INFO] {name}: {taken} samples, {rate}% ok")

        return report

    def _sample_check(
        self,
        name: str,
        probe: Probe,
        *,
        count: int | None = None,
        duration_s: float | None = None,
        interval_ms: int | None = None,
    ) -> Stats | None:
        series = self.sampler.sample(
            probe,
            count=count,
            duration_s=duration_s,
            interval_ms=self.config.sampling.interval_ms if interval_ms is None else interval_ms,
            progress=self._progress(name),
            cancel=self.cancel,
        )
        return self._fold(name, series)

    def _fold(self, name: str, series: SampleSeries) -> Stats | None:
        """Reduce a series to one ledger record; returns None when nothing ran."""
        if not series.outcomes and self.cancel.is_set():
            self._record(name, Severity.SKIPPED, "N/A (cancelled)")
            return None

        stats = aggregate(series)
        stability = classify(stats)
        severity = grade(stats, stability, series.kind)
        self._record(name, severity, f"{describe(stats, stability)} [{series.target}]", stats=stats)
        self._stats[name] = stats
        return stats

    def _phase_system(self) -> None:
        self._record("Operating system", Severity.INFO, f"{platform.system()} {platform.release()}")

        if self._call("Root privileges", self.privilege_check):
            self._record("Root privileges", Severity.OK, "running as root")
        else:
            self._record(
                "Root privileges",
                Severity.WARN,
                "not running as root; pppd and link inspection may be refused",
            )

        missing = self._call("Diagnostic tools", self.tool_check)
        if missing:
            self._record("Diagnostic tools", Severity.WARN, f"missing: {', '.join(missing)}")
        else:
            self._record("Diagnostic tools", Severity.OK, "all required tools present")

    def _phase_adapter(self) -> None:
        settings = self.config.adapter
        iface = self._call("Network adapter", self.adapters.select_adapter, settings.interface)
        if iface is None:
            self._record("Network adapter", Severity.FAIL, "no usable wired adapter found")
            self.state = SessionState.LINK_DOWN
            raise PhaseFailure("no network adapter")
        self.iface = iface
        self._record("Network adapter", Severity.OK, f"using {iface}")

        status = self._call("Link state", self.adapters.link_status, iface)
        if not status.is_up:
            self._record("Link state", Severity.FAIL, f"{iface} has no carrier")
            self.state = SessionState.LINK_DOWN
            raise PhaseFailure("link down")
        self._record("Link state", Severity.OK, f"{iface} carrier up")

        if status.speed_bps is None:
            self._record("Link speed", Severity.INFO, "negotiated speed unknown")
        else:
            mbps = status.speed_bps // 1_000_000
            if mbps < settings.min_speed_mbps:
                self._record(
                    "Link speed",
                    Severity.WARN,
                    f"negotiated {mbps} Mb/s, expected at least {settings.min_speed_mbps} Mb/s",
                )
            else:
                self._record("Link speed", Severity.OK, f"{mbps} Mb/s")

        ont = self.config.session.remote_termination
        if not ont:
            self._record("ONT reachability", Severity.SKIPPED, "N/A (no ONT address configured)")
        else:
            self._sample_check(
                "ONT reachability",
                self._probe(ProbeKind.ICMP, ont),
                count=self.config.sampling.basic_count,
            )

    def _phase_authentication(self) -> None:
        settings = self.config.session
        if settings.skip_auth:
            for name in ("PPP credentials", "PPPoE authentication"):
                self._record(name, Severity.SKIPPED, "N/A (skipped; using the existing session)")
            return

        creds = self._call("PPP credentials", self.session.credentials_available, settings.peer)
        if not creds.available:
            self._record("PPP credentials", Severity.FAIL, creds.detail or "no credentials configured")
            self.state = SessionState.AUTH_FAILED
            raise PhaseFailure("no PPP credentials")
        self._record("PPP credentials", Severity.OK, f"credentials found for peer {settings.peer}")

        auth = self._call("PPPoE authentication", self.session.authenticate, settings.peer)
        if not auth.success:
            text = describe_auth_error(auth.error_code)
            if auth.detail:
                text = f"{text} ({auth.detail})"
            self._record("PPPoE authentication", Severity.FAIL, text)
            self.state = SessionState.AUTH_FAILED
            raise PhaseFailure("authentication failed")
        self._record("PPPoE authentication", Severity.OK, f"session established via peer {settings.peer}")

    def _phase_session(self) -> None:
        name = self.config.session.interface
        intf = self._call("PPP interface", self.session.session_interface, name)
        if intf is None:
            self._record("PPP interface", Severity.FAIL, f"{name} is not present")
            self.state = SessionState.AUTH_FAILED
            raise PhaseFailure("no PPP session interface")
        self._record("PPP interface", Severity.OK, f"{name} present")

        if not intf.ipv4_addrs:
            self._record("PPP address", Severity.FAIL, f"{name} has no IPv4 address")
            self.state = SessionState.AUTH_FAILED
            raise PhaseFailure("PPP interface has no address")
        self._record("PPP address", Severity.OK, ", ".join(intf.ipv4_addrs))

        severity, text = grade_next_hop(intf.next_hop)
        self._record("PPP next hop", severity, text)
        self.state = SessionState.CONNECTED

        # The session is already up here, so a routing-table error must not
        # send the session back to AUTH_FAILED.
        try:
            route_iface = self._call("Default route", self.route_lookup)
        except CollaboratorError as exc:
            self._record("Default route", Severity.WARN, f"routing table unavailable ({exc.message})")
            return
        if route_iface == name:
            self._record("Default route", Severity.OK, f"default route via {name}")
        elif route_iface is None:
            self._record("Default route", Severity.WARN, "no IPv4 default route")
        else:
            self._record("Default route", Severity.WARN, f"default route uses {route_iface}, not {name}")

    def _phase_connectivity(self) -> None:
        targets = self.config.targets
        count = self.config.sampling.basic_count
        results = [
            self._sample_check("Ping public IP", self._probe(ProbeKind.ICMP, targets.public_ip), count=count),
            self._sample_check("DNS lookup", self._probe(ProbeKind.DNS, targets.dns_name), count=count),
            self._sample_check(
                "HTTPS connect",
                self._probe(ProbeKind.TCP, targets.tcp_host, targets.tcp_port),
                count=count,
            ),
        ]
        if self.cancel.is_set():
            return
        if all(stats is not None and stats.success_count == 0 for stats in results):
            raise PhaseFailure("no external reachability")

    def _phase_extended(self) -> None:
        targets = self.config.targets
        sampling = self.config.sampling

        self._sample_check(
            "Stability run",
            self._probe(ProbeKind.ICMP, targets.public_ip),
            duration_s=sampling.stability_duration_s,
        )
        self._sample_check(
            "Latency jitter",
            self._probe(ProbeKind.ICMP, targets.public_ip),
            count=sampling.jitter_count,
        )
        self._sample_check(
            "DNS stability",
            self._probe(ProbeKind.DNS, targets.dns_name),
            count=sampling.dns_count,
        )
        self._sample_check(
            "Connection rate",
            self._probe(ProbeKind.TCP, targets.tcp_host, targets.tcp_port),
            count=sampling.rate_burst_count,
            interval_ms=0,
        )
        self._capacity_check()

    def _capacity_check(self) -> None:
        hosts = self.config.targets.capacity_hosts
        if not hosts:
            self._record("Connection capacity", Severity.SKIPPED, "N/A (no capacity endpoints configured)")
            return
        if self.cancel.is_set():
            self._record("Connection capacity", Severity.SKIPPED, "N/A (cancelled)")
            return

        sampling = self.config.sampling
        probes = [self._probe(ProbeKind.TCP, host) for host in hosts]
        outcomes = run_bounded(
            probes,
            max_workers=sampling.capacity_workers,
            phase_timeout_s=sampling.phase_timeout_s,
        )
        series = SampleSeries(
            target=", ".join(hosts),
            kind=ProbeKind.TCP,
            config=SamplingConfig(
                count=len(probes),
                duration_s=None,
                interval_ms=0,
                timeout_ms=sampling.probe_timeout_ms,
            ),
            outcomes=outcomes,
        )
        self._fold("Connection capacity", series)

    def _phase_traceroute(self) -> None:
        target = self.config.targets.traceroute_target
        hops = self._call("Traceroute", self.tracer, target)
        if not hops:
            self._record("Traceroute", Severity.WARN, "no hops reported (traceroute missing or blocked)")
            return

        silent = sum(1 for hop in hops if hop.split()[1:2] == ["*"])
        suffix = f", {silent} silent hop(s)" if silent else ""
        if target in hops[-1].split():
            self._record("Traceroute", Severity.OK, f"reached {target} in {len(hops)} hops{suffix}")
        else:
            self._record(
                "Traceroute",
                Severity.WARN,
                f"stopped after {len(hops)} hops without reaching {target}{suffix}",
            )
