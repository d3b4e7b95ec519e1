"""Console entrypoints for the PPPoE link diagnostics toolkit."""

import dataclasses
import json
import signal
import threading

import typer
from rich.console import Console
from rich.table import Table

from pppoe_link_diagnostics.config import DiagnosticsConfig, load_config, validate_config
from pppoe_link_diagnostics.link_check.classifier import classify, describe, grade
from pppoe_link_diagnostics.link_check.errors import ConfigError
from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER, LOG_FILE, LoggingManager
from pppoe_link_diagnostics.link_check.orchestrator import LinkDiagnosisSession, SessionReport
from pppoe_link_diagnostics.link_check.probes import make_probe
from pppoe_link_diagnostics.link_check.report import print_report, report_to_dict
from pppoe_link_diagnostics.link_check.sampler import Sampler
from pppoe_link_diagnostics.link_check.stats import aggregate
from pppoe_link_diagnostics.link_check.types import ProbeKind, Severity

EXIT_OK = 0
EXIT_PROBLEMS = 1
EXIT_CONFIG = 2


class DiagnosticsApp:
    """Load configuration, run one session and publish the report."""

    def __init__(
        self,
        config: DiagnosticsConfig,
        *,
        verbose: bool = False,
        json_path: str | None = None,
        logger: LoggingManager = DEFAULT_LOGGER,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.verbose = verbose
        self.json_path = json_path
        self.logger = logger
        self.console = console or Console()
        self.cancel = threading.Event()

    def run(self) -> int:
        self.logger.setup(self.verbose)
        self.logger.log("[INFO] PPPoE link diagnostics starting.")
        self.logger.log(f"[INFO] Log file (if writable): {LOG_FILE}")

        previous = self._install_interrupt_handler()
        try:
            report = self.build_session().run()
        finally:
            if previous is not None:
                signal.signal(signal.SIGINT, previous)

        print_report(report, console=self.console)
        if self.json_path:
            self._write_json(report)
        return EXIT_OK if report.overall is Severity.OK else EXIT_PROBLEMS

    def build_session(self) -> LinkDiagnosisSession:
        return LinkDiagnosisSession(self.config, logger=self.logger, cancel=self.cancel)

    def _install_interrupt_handler(self):
        """First Ctrl-C cancels the session cleanly instead of killing it."""
        if threading.current_thread() is not threading.main_thread():
            return None

        def _cancel(signum, frame) -> None:
            self.logger.log("[INFO] Interrupt received; finishing with the checks collected so far.")
            self.cancel.set()

        return signal.signal(signal.SIGINT, _cancel)

    def _write_json(self, report: SessionReport) -> None:
        try:
            with open(self.json_path, "w", encoding="utf-8") as handle:
                json.dump(report_to_dict(report), handle, indent=2)
        except OSError as exc:
            self.logger.log(f"[WARN] Failed to write report to {self.json_path}: {exc}")
            return
        self.logger.log(f"[INFO] JSON report written to {self.json_path}")


class NetworkLinkCLI:
    """Object-oriented wrapper for the Typer command-line interface."""

    def __init__(self) -> None:
        self.app = typer.Typer(help="Diagnose a degraded or failing PPPoE link.")
        self.app.callback(invoke_without_command=True)(self._main)
        self.app.command("run")(self._run)
        self.app.command("probe")(self._probe)
        self.app.command("check-config")(self._check_config)
        self.app_class = DiagnosticsApp

    def _main(self, ctx: typer.Context) -> None:
        """Run the full diagnosis when no subcommand is given."""
        if ctx.invoked_subcommand is not None:
            return
        self._execute()

    def _run(
        self,
        config_path: str | None = typer.Option(
            None,
            "--config",
            "-c",
            help="YAML configuration file.",
        ),
        interface: str | None = typer.Option(
            None,
            "--interface",
            "-i",
            help="Ethernet interface facing the ONT (default: auto-detect).",
        ),
        peer: str | None = typer.Option(
            None,
            "--peer",
            "-p",
            help="pppd peer name under /etc/ppp/peers.",
        ),
        skip_auth: bool = typer.Option(
            False,
            "--skip-auth",
            help="Do not start pppd; diagnose the session that is already up.",
        ),
        duration: float | None = typer.Option(
            None,
            "--duration",
            "-d",
            help="Length of the stability run in seconds.",
        ),
        json_path: str | None = typer.Option(
            None,
            "--json",
            help="Also write the report as JSON to this path.",
        ),
        verbose: bool = typer.Option(
            False,
            "--verbose",
            help="Enable verbose debug logging.",
        ),
    ) -> None:
        """Run every diagnostic phase and print the root-cause report."""
        self._execute(
            config_path=config_path,
            interface=interface,
            peer=peer,
            skip_auth=skip_auth,
            duration=duration,
            json_path=json_path,
            verbose=verbose,
        )

    def _execute(
        self,
        *,
        config_path: str | None = None,
        interface: str | None = None,
        peer: str | None = None,
        skip_auth: bool = False,
        duration: float | None = None,
        json_path: str | None = None,
        verbose: bool = False,
    ) -> None:
        try:
            config = load_config(config_path)
        except ConfigError as exc:
            typer.echo(f"Invalid configuration: {exc}", err=True)
            raise typer.Exit(code=EXIT_CONFIG) from exc

        config = apply_overrides(
            config,
            interface=interface,
            peer=peer,
            skip_auth=skip_auth,
            duration=duration,
        )
        exit_code = self.app_class(config, verbose=verbose, json_path=json_path).run()
        raise typer.Exit(code=exit_code)

    def _probe(
        self,
        target: str = typer.Argument(..., help="Host or address to probe."),
        kind: str = typer.Option("icmp", "--kind", "-k", help="Probe kind: icmp, tcp or dns."),
        count: int | None = typer.Option(None, "--count", "-n", min=0, help="Number of samples."),
        duration: float | None = typer.Option(
            None, "--duration", "-d", min=0.0, help="Sample for this many seconds."
        ),
        interval_ms: int = typer.Option(200, "--interval-ms", min=0, help="Pause between samples."),
        timeout_ms: int = typer.Option(2000, "--timeout-ms", min=1, help="Timeout for each probe."),
        port: int = typer.Option(443, "--port", help="TCP port for --kind tcp."),
        verbose: bool = typer.Option(False, "--verbose", help="Enable verbose debug logging."),
    ) -> None:
        """Sample one target and print its stability verdict."""
        try:
            probe_kind = ProbeKind(kind.lower())
        except ValueError as exc:
            typer.echo(f"Unknown probe kind {kind!r}; use icmp, tcp or dns.", err=True)
            raise typer.Exit(code=EXIT_CONFIG) from exc
        if count is not None and duration is not None:
            typer.echo("Use either --count or --duration, not both.", err=True)
            raise typer.Exit(code=EXIT_CONFIG)
        if count is None and duration is None:
            count = 20

        DEFAULT_LOGGER.setup(verbose, log_file=None)
        probe = make_probe(probe_kind, target, timeout_ms, port=port)
        series = Sampler().sample(
            probe,
            count=count,
            duration_s=duration,
            interval_ms=interval_ms,
            progress=lambda taken, rate: DEFAULT_LOGGER.log(f"[INFO] {taken} samples, {rate}% ok"),
        )
        stats = aggregate(series)
        stability = classify(stats)
        severity = grade(stats, stability, probe_kind)

        table = Table("Metric", "Value")
        table.add_row("Target", f"{target} ({probe_kind.value})")
        table.add_row("Samples", f"{stats.success_count}/{stats.total} ok ({stats.success_rate_pct}%)")
        table.add_row(
            "Latency", f"avg {stats.avg_latency_ms} ms, min {stats.min_latency_ms}, max {stats.max_latency_ms}"
        )
        table.add_row("Jitter", f"{stats.jitter_ms} ms")
        table.add_row("Drop events", str(len(stats.drop_events)))
        table.add_row("Longest outage", f"{stats.max_consecutive_failures} samples")
        table.add_row("Verdict", f"[{severity.value}] {describe(stats, stability)}")
        Console().print(table)
        raise typer.Exit(code=EXIT_OK if severity is Severity.OK else EXIT_PROBLEMS)

    def _check_config(
        self,
        path: str = typer.Argument(..., help="YAML configuration file to validate."),
    ) -> None:
        """Validate a configuration file and list any issues."""
        try:
            load_config(path)
        except ConfigError as exc:
            for issue in exc.issues:
                typer.echo(f"[CONFIG] {issue}", err=True)
            typer.echo(f"{path}: {len(exc.issues)} issue(s) found.", err=True)
            raise typer.Exit(code=EXIT_CONFIG) from exc
        typer.echo(f"{path}: configuration OK.")

    def run(self) -> None:
        """Invoke the Typer application."""
        self.app()


def apply_overrides(
    config: DiagnosticsConfig,
    *,
    interface: str | None = None,
    peer: str | None = None,
    skip_auth: bool = False,
    duration: float | None = None,
) -> DiagnosticsConfig:
    """Return a copy of ``config`` with command-line values applied."""
    adapter = config.adapter
    session = config.session
    sampling = config.sampling
    if interface:
        adapter = dataclasses.replace(adapter, interface=interface)
    if peer:
        session = dataclasses.replace(session, peer=peer)
    if skip_auth:
        session = dataclasses.replace(session, skip_auth=True)
    if duration is not None:
        issues = validate_config({"sampling": {"stability_duration_s": duration}})
        if issues:
            raise typer.BadParameter("; ".join(issues), param_hint="--duration")
        sampling = dataclasses.replace(sampling, stability_duration_s=duration)
    return dataclasses.replace(config, adapter=adapter, session=session, sampling=sampling)


cli = NetworkLinkCLI()
app = cli.app


if __name__ == "__main__":
    cli.run()
