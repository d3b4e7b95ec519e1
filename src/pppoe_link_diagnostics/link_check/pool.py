"""Bounded fan-out of independent probes with wait-for-all join."""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait

from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER
from pppoe_link_diagnostics.link_check.probes import Probe, run_probe
from pppoe_link_diagnostics.link_check.types import ErrorKind, ProbeOutcome


def run_bounded(
    probes: Sequence[Probe],
    *,
    max_workers: int = 8,
    phase_timeout_s: float = 10.0,
) -> list[ProbeOutcome]:
    """Run every probe on at most ``max_workers`` threads and join them all.

    Outcomes come back in submission order once every worker has finished or
    the phase timeout expired. Workers only return values; nothing shared is
    mutated. Probes still pending at the deadline are cancelled and reported
    as TIMEOUT samples.
    """
    if not probes:
        return []

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(probes))))
    try:
        futures: list[Future[ProbeOutcome]] = [executor.submit(run_probe, probe) for probe in probes]
        done, not_done = wait(futures, timeout=phase_timeout_s)
        if not_done:
            DEFAULT_LOGGER.debug(
                "%d of %d probes still pending after %.1fs; cancelling",
                len(not_done),
                len(futures),
                phase_timeout_s,
            )
        outcomes: list[ProbeOutcome] = []
        for probe, future in zip(probes, futures):
            if future in done:
                outcomes.append(_collect(probe, future))
            else:
                future.cancel()
                outcomes.append(
                    ProbeOutcome(
                        timestamp=time.time(),
                        success=False,
                        error_kind=ErrorKind.TIMEOUT,
                        detail=f"{probe.target} did not finish within the {phase_timeout_s}s phase timeout",
                    )
                )
        return outcomes
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def _collect(probe: Probe, future: Future[ProbeOutcome]) -> ProbeOutcome:
    exc = future.exception()
    if exc is None:
        return future.result()
    # run_probe already converts probe errors; this covers failures in the worker itself.
    return ProbeOutcome(
        timestamp=time.time(),
        success=False,
        error_kind=ErrorKind.UNKNOWN,
        detail=f"{probe.target}: {exc}",
    )
