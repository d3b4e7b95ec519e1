"""Append-only accumulator of named check results for one session."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator

from pppoe_link_diagnostics.link_check.errors import EngineInvariantViolation
from pppoe_link_diagnostics.link_check.types import Category, CheckRecord, Severity, Stats


class HealthLedger:
    """Ordered, append-only collection of ``CheckRecord`` entries.

    Records are never mutated or removed. ``order`` groups records for display
    independently of when they were appended; ties keep insertion order.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._records: list[CheckRecord] = []
        self._names: set[str] = set()
        self._clock = clock

    def record(
        self,
        name: str,
        status_text: str,
        order: int,
        *,
        severity: Severity,
        category: Category,
        stats: Stats | None = None,
    ) -> CheckRecord:
        if name in self._names:
            raise EngineInvariantViolation(f"check {name!r} already recorded in this session")
        entry = CheckRecord(
            name=name,
            order=order,
            severity=severity,
            category=category,
            status_text=status_text,
            timestamp=self._clock(),
            sequence=len(self._records),
            stats=stats,
        )
        self._records.append(entry)
        self._names.add(name)
        return entry

    @property
    def records(self) -> tuple[CheckRecord, ...]:
        """Records in insertion order."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CheckRecord]:
        return iter(tuple(self._records))

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def ordered(self) -> list[CheckRecord]:
        """Records grouped by ``order``, ties broken by insertion sequence."""
        return sorted(self._records, key=lambda r: (r.order, r.sequence))

    def overall_status(self) -> Severity:
        """FAIL if any record failed, else WARN if any warned, else OK."""
        severities = {r.severity for r in self._records}
        if Severity.FAIL in severities:
            return Severity.FAIL
        if Severity.WARN in severities:
            return Severity.WARN
        return Severity.OK

    def find(self, text: str) -> list[CheckRecord]:
        """Records whose name or status text contains ``text`` (case-insensitive)."""
        needle = text.lower()
        return [r for r in self._records if needle in r.name.lower() or needle in r.status_text.lower()]

    def has(self, category: Category, *severities: Severity) -> bool:
        """True when any record in ``category`` carries one of ``severities``."""
        return any(r.category is category and r.severity in severities for r in self._records)

    def by_category(self, category: Category) -> list[CheckRecord]:
        return [r for r in self._records if r.category is category]
