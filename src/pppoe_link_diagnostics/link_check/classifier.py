"""Map aggregated stats to a stability verdict and a check severity."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable

from pppoe_link_diagnostics.link_check.stats import check_stats
from pppoe_link_diagnostics.link_check.types import (
    STABILITY_LABELS,
    ProbeKind,
    Severity,
    StabilityClass,
    Stats,
)


@dataclasses.dataclass(frozen=True)
class StabilityThresholds:
    """Cut-offs for one probe kind."""

    mostly_stable_pct: float = 95.0
    drop_run_length: int = 5
    severe_loss_ratio: float = 0.3
    jitter_warn_ms: float = 50.0
    latency_warn_ms: float = 150.0


THRESHOLDS: dict[ProbeKind, StabilityThresholds] = {
    ProbeKind.ICMP: StabilityThresholds(jitter_warn_ms=50.0, latency_warn_ms=150.0),
    ProbeKind.TCP: StabilityThresholds(jitter_warn_ms=100.0, latency_warn_ms=300.0),
    ProbeKind.DNS: StabilityThresholds(jitter_warn_ms=150.0, latency_warn_ms=500.0),
}

DEFAULT_THRESHOLDS = THRESHOLDS[ProbeKind.ICMP]

StabilityRule = tuple[StabilityClass, Callable[[Stats, StabilityThresholds], bool]]

# Evaluated top to bottom, first match wins. The run-length rule must stay
# ahead of the aggregate loss rule.
STABILITY_RULES: tuple[StabilityRule, ...] = (
    (StabilityClass.STABLE, lambda s, t: s.success_rate_pct == 100),
    (StabilityClass.MOSTLY_STABLE, lambda s, t: s.success_rate_pct >= t.mostly_stable_pct),
    (StabilityClass.INTERMITTENT_DROPS, lambda s, t: s.max_consecutive_failures >= t.drop_run_length),
    (StabilityClass.SEVERE_INSTABILITY, lambda s, t: s.fail_count > t.severe_loss_ratio * s.total),
)


def classify(stats: Stats, thresholds: StabilityThresholds = DEFAULT_THRESHOLDS) -> StabilityClass:
    check_stats(stats)
    for verdict, matches in STABILITY_RULES:
        if matches(stats, thresholds):
            return verdict
    return StabilityClass.UNSTABLE


def grade(stats: Stats, stability: StabilityClass, kind: ProbeKind) -> Severity:
    """Fold a classified series into the severity recorded on the ledger."""
    thresholds = THRESHOLDS[kind]
    if stats.success_count == 0 or stability is StabilityClass.SEVERE_INSTABILITY:
        return Severity.FAIL
    if stability in (StabilityClass.INTERMITTENT_DROPS, StabilityClass.UNSTABLE):
        return Severity.WARN
    if stats.jitter_ms > thresholds.jitter_warn_ms or stats.avg_latency_ms > thresholds.latency_warn_ms:
        return Severity.WARN
    return Severity.OK


def describe(stats: Stats, stability: StabilityClass) -> str:
    """One-line human summary of a classified series."""
    if stats.total == 0:
        return "no samples collected"
    text = (
        f"{STABILITY_LABELS[stability]}: {stats.success_count}/{stats.total} ok "
        f"({stats.success_rate_pct}%)"
    )
    if stats.success_count:
        text += f", avg {stats.avg_latency_ms:.1f} ms, jitter {stats.jitter_ms:.1f} ms"
    if stats.drop_events:
        text += (
            f", {len(stats.drop_events)} drop event(s), "
            f"longest {stats.max_consecutive_failures} in a row"
        )
    return text
