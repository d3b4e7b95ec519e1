"""Tests for the append-only health ledger."""

import pytest

from pppoe_link_diagnostics.link_check.errors import EngineInvariantViolation
from pppoe_link_diagnostics.link_check.ledger import HealthLedger
from pppoe_link_diagnostics.link_check.types import Category, Severity


def _ledger(*severities: Severity) -> HealthLedger:
    ledger = HealthLedger(clock=lambda: 1000.0)
    for index, severity in enumerate(severities):
        ledger.record(f"check {index}", severity.value, 10, severity=severity, category=Category.SYSTEM)
    return ledger


@pytest.mark.parametrize(
    ("severities", "expected"),
    [
        ((Severity.OK, Severity.WARN, Severity.OK), Severity.WARN),
        ((Severity.OK, Severity.WARN, Severity.FAIL), Severity.FAIL),
        ((Severity.OK, Severity.OK), Severity.OK),
        ((Severity.FAIL, Severity.WARN), Severity.FAIL),
        ((Severity.INFO, Severity.SKIPPED), Severity.OK),
        ((), Severity.OK),
    ],
)
def test_overall_status_precedence(severities, expected):
    assert _ledger(*severities).overall_status() is expected


def test_record_appends_without_touching_existing_entries():
    ledger = _ledger(Severity.OK)
    first = ledger.records[0]

    ledger.record("later", "fine", 5, severity=Severity.WARN, category=Category.LINK)

    assert ledger.records[0] is first
    assert len(ledger) == 2
    assert [r.sequence for r in ledger.records] == [0, 1]
    assert ledger.records[1].timestamp == 1000.0


def test_duplicate_names_are_rejected():
    ledger = _ledger(Severity.OK)

    with pytest.raises(EngineInvariantViolation, match="already recorded"):
        ledger.record("check 0", "again", 10, severity=Severity.OK, category=Category.SYSTEM)


def test_display_order_groups_by_order_then_insertion():
    ledger = HealthLedger()
    ledger.record("traceroute", "ok", 70, severity=Severity.OK, category=Category.ROUTE)
    ledger.record("adapter", "ok", 20, severity=Severity.OK, category=Category.ADAPTER)
    ledger.record("system", "ok", 10, severity=Severity.OK, category=Category.SYSTEM)
    ledger.record("link", "ok", 20, severity=Severity.OK, category=Category.LINK)

    assert [r.name for r in ledger.ordered()] == ["system", "adapter", "link", "traceroute"]
    assert [r.name for r in ledger] == ["traceroute", "adapter", "system", "link"]


def test_find_matches_name_or_status_loosely():
    ledger = HealthLedger()
    ledger.record("PPPoE authentication", "bad credentials", 30, severity=Severity.FAIL, category=Category.AUTH)
    ledger.record("Link state", "eth0 carrier up", 20, severity=Severity.OK, category=Category.LINK)

    assert [r.name for r in ledger.find("auth")] == ["PPPoE authentication"]
    assert [r.name for r in ledger.find("CARRIER")] == ["Link state"]
    assert ledger.find("dns") == []


def test_has_and_by_category():
    ledger = HealthLedger()
    ledger.record("Link state", "down", 20, severity=Severity.FAIL, category=Category.LINK)
    ledger.record("Link speed", "N/A", 20, severity=Severity.SKIPPED, category=Category.LINK)

    assert ledger.has(Category.LINK, Severity.FAIL)
    assert not ledger.has(Category.LINK, Severity.WARN)
    assert not ledger.has(Category.AUTH, Severity.FAIL)
    assert [r.name for r in ledger.by_category(Category.LINK)] == ["Link state", "Link speed"]
    assert "Link speed" in ledger
