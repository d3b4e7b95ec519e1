"""Run a probe repeatedly and collect the ordered sample series."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from pppoe_link_diagnostics.link_check.probes import Probe, run_probe
from pppoe_link_diagnostics.link_check.types import SampleSeries, SamplingConfig

ProgressCallback = Callable[[int, float], None]


class Sampler:
    """Drive a probe for a fixed count or a wall-clock duration.

    A single probe error never aborts sampling: ``run_probe`` turns it into a
    failed sample. The optional ``cancel`` event is checked between samples and
    doubles as the interval wait, so setting it stops the run promptly.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.clock = clock
        self.sleep = sleep

    def sample(
        self,
        probe: Probe,
        *,
        count: int | None = None,
        duration_s: float | None = None,
        interval_ms: int = 200,
        progress: ProgressCallback | None = None,
        progress_every: int = 10,
        cancel: threading.Event | None = None,
    ) -> SampleSeries:
        if (count is None) == (duration_s is None):
            raise ValueError("exactly one of count or duration_s must be given")
        if count is not None and count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        if duration_s is not None and duration_s < 0:
            raise ValueError(f"duration_s must be >= 0, got {duration_s}")

        config = SamplingConfig(
            count=count,
            duration_s=duration_s,
            interval_ms=interval_ms,
            timeout_ms=probe.timeout_ms,
        )
        series = SampleSeries(target=probe.target, kind=probe.kind, config=config)
        started = self.clock()
        successes = 0

        while not self._finished(series, started, config):
            if cancel is not None and cancel.is_set():
                break

            outcome = run_probe(probe)
            series.outcomes.append(outcome)
            if outcome.success:
                successes += 1

            taken = len(series.outcomes)
            if progress is not None and progress_every > 0 and taken % progress_every == 0:
                progress(taken, round(successes / taken * 100, 1))

            if self._finished(series, started, config):
                break
            self._pause(interval_ms / 1000.0, cancel)

        return series

    def _finished(self, series: SampleSeries, started: float, config: SamplingConfig) -> bool:
        if config.count is not None:
            return len(series.outcomes) >= config.count
        return self.clock() - started >= config.duration_s

    def _pause(self, seconds: float, cancel: threading.Event | None) -> None:
        if seconds <= 0:
            return
        if cancel is not None:
            cancel.wait(seconds)
        else:
            self.sleep(seconds)


DEFAULT_SAMPLER = Sampler()


def sample(
    probe: Probe,
    *,
    count: int | None = None,
    duration_s: float | None = None,
    interval_ms: int = 200,
    progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
) -> SampleSeries:
    """Module-level convenience wrapper around ``DEFAULT_SAMPLER``."""
    return DEFAULT_SAMPLER.sample(
        probe,
        count=count,
        duration_s=duration_s,
        interval_ms=interval_ms,
        progress=progress,
        cancel=cancel,
    )
