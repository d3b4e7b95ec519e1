"""Render a finished session as rich tables and panels, or as JSON."""

from __future__ import annotations

import dataclasses
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pppoe_link_diagnostics.link_check.orchestrator import SessionReport
from pppoe_link_diagnostics.link_check.types import CheckRecord, Severity

SEVERITY_STYLES: dict[Severity, str] = {
    Severity.OK: "green",
    Severity.WARN: "yellow",
    Severity.FAIL: "bold red",
    Severity.INFO: "cyan",
    Severity.SKIPPED: "dim",
}


def render_status_table(records: tuple[CheckRecord, ...] | list[CheckRecord]) -> Table:
    """Numbered table of every check in display order."""
    table = Table("#", "Check", "Status", "Detail", expand=True)
    for number, entry in enumerate(records, start=1):
        table.add_row(
            str(number),
            entry.name,
            Text(entry.severity.value, style=SEVERITY_STYLES[entry.severity]),
            entry.status_text,
        )
    return table


def render_rollup(report: SessionReport) -> Panel:
    """Tiered working / problems / skipped summary."""
    result = report.result
    skipped = [r.name for r in report.records if r.severity is Severity.SKIPPED]
    info = [f"{r.name}: {r.status_text}" for r in report.records if r.severity is Severity.INFO]

    lines: list[Text] = []
    lines.append(Text("Working", style="bold green"))
    lines.extend(Text(f"  + {item}") for item in result.working_components or ("(none)",))
    lines.append(Text("Problems", style="bold red"))
    lines.extend(Text(f"  - {item}") for item in result.problem_areas or ("(none)",))
    if info:
        lines.append(Text("Info", style="bold cyan"))
        lines.extend(Text(f"  i {item}") for item in info)
    if skipped:
        lines.append(Text("Not checked", style="dim"))
        lines.append(Text(f"  {', '.join(skipped)}", style="dim"))

    title = f"Overall: {report.overall.value}"
    return Panel(Group(*lines), title=title, subtitle=f"session state: {report.state.value}")


def render_diagnosis(report: SessionReport) -> Panel:
    """Root-cause narrative and remediation guidance."""
    result = report.result
    heading = result.root_cause.value.replace("_", " ") if result.root_cause else "no fault found"
    body: list[Text] = [Text(result.explanation), Text("")]
    body.append(Text("What to do:", style="bold"))
    body.extend(Text(f"  {index}. {action}") for index, action in enumerate(result.guidance, start=1))
    style = "green" if result.root_cause is None else "red"
    return Panel(Group(*body), title=f"Root cause: {heading}", border_style=style)


def print_report(report: SessionReport, console: Console | None = None) -> None:
    output_console = console or Console()
    output_console.print(render_status_table(report.records))
    output_console.print(render_rollup(report))
    output_console.print(render_diagnosis(report))


def _record_to_dict(entry: CheckRecord) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": entry.name,
        "order": entry.order,
        "severity": entry.severity.value,
        "category": entry.category.value,
        "status": entry.status_text,
        "timestamp": entry.timestamp,
    }
    if entry.stats is not None:
        stats = dataclasses.asdict(entry.stats)
        stats["drop_events"] = [dataclasses.asdict(event) for event in entry.stats.drop_events]
        data["stats"] = stats
    return data


def report_to_dict(report: SessionReport) -> dict[str, Any]:
    """JSON-serialisable view of a session report."""
    result = report.result
    return {
        "state": report.state.value,
        "overall": report.overall.value,
        "checks": [_record_to_dict(entry) for entry in report.records],
        "diagnosis": {
            "root_cause": result.root_cause.value if result.root_cause else None,
            "explanation": result.explanation,
            "guidance": list(result.guidance),
            "working_components": list(result.working_components),
            "problem_areas": list(result.problem_areas),
        },
    }
