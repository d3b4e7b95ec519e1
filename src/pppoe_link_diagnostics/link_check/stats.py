"""Reduce a sample series to loss, latency, jitter and drop-event statistics."""

from __future__ import annotations

from pppoe_link_diagnostics.link_check.errors import EngineInvariantViolation
from pppoe_link_diagnostics.link_check.types import DropEvent, ProbeOutcome, SampleSeries, Stats


def find_drop_events(outcomes: list[ProbeOutcome]) -> list[DropEvent]:
    """Return every contiguous run of failures in one pass over ``outcomes``."""
    events: list[DropEvent] = []
    run_start: int | None = None

    for index, outcome in enumerate(outcomes):
        if not outcome.success:
            if run_start is None:
                run_start = index
            continue
        if run_start is not None:
            events.append(DropEvent(start_index=run_start, length=index - run_start))
            run_start = None

    if run_start is not None:
        events.append(DropEvent(start_index=run_start, length=len(outcomes) - run_start))
    return events


def aggregate(series: SampleSeries) -> Stats:
    """Compute ``Stats`` for ``series``; an empty or all-failed series is valid."""
    outcomes = series.outcomes
    total = len(outcomes)
    latencies = [o.latency_ms for o in outcomes if o.success and o.latency_ms is not None]
    success_count = sum(1 for o in outcomes if o.success)
    fail_count = total - success_count

    if latencies:
        min_latency = min(latencies)
        max_latency = max(latencies)
        avg_latency = sum(latencies) / len(latencies)
    else:
        min_latency = max_latency = avg_latency = 0.0

    events = find_drop_events(outcomes)
    return Stats(
        total=total,
        success_count=success_count,
        fail_count=fail_count,
        success_rate_pct=round(success_count / total * 100, 1) if total else 0.0,
        avg_latency_ms=round(avg_latency, 2),
        min_latency_ms=round(min_latency, 2),
        max_latency_ms=round(max_latency, 2),
        jitter_ms=round(max_latency - min_latency, 2),
        drop_events=tuple(events),
        max_consecutive_failures=max((e.length for e in events), default=0),
    )


def check_stats(stats: Stats) -> None:
    """Raise ``EngineInvariantViolation`` if ``stats`` is internally inconsistent."""
    problems: list[str] = []
    if stats.total < 0 or stats.success_count < 0 or stats.fail_count < 0:
        problems.append("negative sample counts")
    if stats.success_count + stats.fail_count != stats.total:
        problems.append(
            f"success_count + fail_count ({stats.success_count} + {stats.fail_count}) != total ({stats.total})"
        )
    if not 0.0 <= stats.success_rate_pct <= 100.0:
        problems.append(f"success_rate_pct {stats.success_rate_pct} outside [0, 100]")
    dropped = sum(e.length for e in stats.drop_events)
    if dropped > stats.fail_count:
        problems.append(f"drop events cover {dropped} samples but fail_count is {stats.fail_count}")
    longest = max((e.length for e in stats.drop_events), default=0)
    if stats.max_consecutive_failures != longest:
        problems.append(
            f"max_consecutive_failures {stats.max_consecutive_failures} != longest drop event {longest}"
        )
    if problems:
        raise EngineInvariantViolation("invalid stats: " + "; ".join(problems))
