"""Pick a single root cause from the health ledger and build guidance."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pppoe_link_diagnostics.link_check.classifier import classify
from pppoe_link_diagnostics.link_check.ledger import HealthLedger
from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER
from pppoe_link_diagnostics.link_check.types import (
    CATEGORY_LABELS,
    STABILITY_LABELS,
    Category,
    CheckRecord,
    DiagnosisResult,
    DiagnosisRule,
    RootCause,
    Severity,
    Stats,
)


def _failed(category: Category):
    def predicate(ledger: HealthLedger) -> bool:
        return ledger.has(category, Severity.FAIL)

    return predicate


def _unreachable(ledger: HealthLedger) -> bool:
    # Only when no internet-facing probe got through; a blocked ping alone is degradation.
    return ledger.has(Category.CONNECTIVITY, Severity.FAIL) and not ledger.has(
        Category.CONNECTIVITY, Severity.OK, Severity.WARN
    )


def _degraded(ledger: HealthLedger) -> bool:
    return any(
        ledger.has(category, Severity.FAIL, Severity.WARN)
        for category in (Category.CONNECTIVITY, Category.STABILITY, Category.DNS, Category.CAPACITY)
    )


def _any_problem(ledger: HealthLedger) -> bool:
    return ledger.overall_status() is not Severity.OK


# Highest priority first; the first predicate that holds is the only one reported.
DEFAULT_RULES: tuple[DiagnosisRule, ...] = (
    DiagnosisRule(
        root_cause=RootCause.LINK_DOWN,
        predicate=_failed(Category.LINK),
        explanation=(
            "The Ethernet link between this host and the ONT is down. No PPPoE "
            "session can be negotiated without a physical link."
        ),
        actions=(
            "Check that the Ethernet cable is firmly seated at both ends.",
            "Try a different cable or a different port on the ONT.",
            "Confirm the ONT is powered and its LAN/link LED is lit.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.ADAPTER_MISSING,
        predicate=_failed(Category.ADAPTER),
        explanation="No usable wired network adapter was found on this host.",
        actions=(
            "Check dmesg, lspci or lsusb for the network card and its driver.",
            "Re-seat or replace USB Ethernet adapters.",
            "Pass --interface explicitly if the adapter has an unusual name.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.REMOTE_TERMINATION_UNREACHABLE,
        predicate=_failed(Category.REMOTE_TERMINATION),
        explanation=(
            "The link is up but the ONT / remote termination does not answer. "
            "The fibre side or the ONT itself is the most likely fault."
        ),
        actions=(
            "Check the ONT PON/LOS LEDs; a red LOS light means no fibre signal.",
            "Power-cycle the ONT and wait two minutes before re-testing.",
            "Contact the provider if the ONT reports loss of signal.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.AUTHENTICATION_FAILED,
        predicate=_failed(Category.AUTH),
        explanation="The PPPoE session could not be authenticated or negotiated with the provider.",
        actions=(
            "Verify the PPP username and password with the provider.",
            "Wait a few minutes in case a stale session is still held by the access concentrator.",
            "Check /var/log/syslog or journalctl -u pppd for the pppd error detail.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.CREDENTIALS_UNAVAILABLE,
        predicate=_failed(Category.CREDENTIALS),
        explanation="No PPP credentials are configured for the selected peer.",
        actions=(
            "Create /etc/ppp/peers/<peer> with a 'user' line for the account.",
            "Add the matching secret to /etc/ppp/chap-secrets or /etc/ppp/pap-secrets.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.SESSION_INTERFACE_ABSENT,
        predicate=_failed(Category.SESSION_INTERFACE),
        explanation=(
            "Authentication did not leave a usable PPP interface with an address; "
            "the session dropped or IPCP negotiation failed."
        ),
        actions=(
            "Re-run the session with pppd debug enabled and inspect the IPCP exchange.",
            "Check that no other PPP client is holding the session.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.EXTERNAL_REACHABILITY_FAILED,
        predicate=_unreachable,
        explanation=(
            "The PPP session is up but traffic does not reach the internet. "
            "Routing or the provider's upstream network is at fault."
        ),
        actions=(
            "Check that the default route points at the PPP interface (ip route show default).",
            "Check local firewall rules for outbound traffic on the PPP interface.",
            "Report the outage to the provider with the traceroute output.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.LINK_DEGRADED,
        predicate=_degraded,
        explanation=(
            "The session reaches the internet, but packet loss, name resolution, "
            "link stability or connection setup is failing or degraded."
        ),
        actions=(
            "Inspect the fibre patch cable and connectors for bends or dirt.",
            "Try another DNS server if only the DNS checks are affected.",
            "Compare results at a quiet hour to rule out congestion.",
            "Share the stability figures below with the provider's support line.",
        ),
    ),
    DiagnosisRule(
        root_cause=RootCause.UNCLASSIFIED_PROBLEM,
        predicate=_any_problem,
        explanation=(
            "The link itself looks healthy, but some checks reported problems that "
            "do not point at a single link fault."
        ),
        actions=(
            "Review each entry in the Problems list above.",
            "Re-run as root with every diagnostic tool installed for complete results.",
            "Re-run the diagnostics to confirm the problem persists.",
        ),
    ),
    DiagnosisRule(
        root_cause=None,
        predicate=lambda ledger: True,
        explanation="All checks passed; no fault was detected on the link.",
        actions=("No action needed. Re-run the diagnostics if the problem comes back.",),
    ),
)


class DiagnosisEngine:
    """Evaluate the rule list top-down and report the first match.

    The engine keeps no state between calls, so diagnosing an unchanged ledger
    twice yields identical results.
    """

    def __init__(self, rules: Sequence[DiagnosisRule] = DEFAULT_RULES) -> None:
        if not rules:
            raise ValueError("at least one diagnosis rule is required")
        self.rules = tuple(rules)

    def select_rule(self, ledger: HealthLedger) -> DiagnosisRule:
        for rule in self.rules:
            if rule.predicate(ledger):
                return rule
        return self.rules[-1]

    def diagnose(self, ledger: HealthLedger, stats: Mapping[str, Stats] | None = None) -> DiagnosisResult:
        rule = self.select_rule(ledger)
        working, problems = summarize_components(ledger)

        explanation = rule.explanation
        details = narrate_stats(stats or {})
        if details:
            explanation = "\n".join([explanation, *details])

        DEFAULT_LOGGER.debug(
            "Diagnosis: root_cause=%s working=%s problems=%s",
            rule.root_cause.value if rule.root_cause else None,
            working,
            problems,
        )
        return DiagnosisResult(
            working_components=working,
            problem_areas=problems,
            root_cause=rule.root_cause,
            explanation=explanation,
            guidance=rule.actions,
        )


def summarize_components(ledger: HealthLedger) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Split ledger categories into working components and problem areas."""
    grouped: dict[Category, list[CheckRecord]] = {}
    for entry in ledger.ordered():
        grouped.setdefault(entry.category, []).append(entry)

    working: list[str] = []
    problems: list[str] = []
    for category, entries in grouped.items():
        label = CATEGORY_LABELS[category]
        failed = [e for e in entries if e.severity is Severity.FAIL]
        warned = [e for e in entries if e.severity is Severity.WARN]
        if failed:
            problems.append(f"{label}: {failed[0].name} failed ({failed[0].status_text})")
        elif warned:
            problems.append(f"{label}: {warned[0].name} degraded ({warned[0].status_text})")
        elif any(e.severity is Severity.OK for e in entries):
            working.append(label)
    return tuple(working), tuple(problems)


def narrate_stats(stats: Mapping[str, Stats]) -> list[str]:
    lines = []
    for name, entry in stats.items():
        if entry.total == 0:
            continue
        verdict = STABILITY_LABELS[classify(entry)]
        line = f"{name}: {verdict.lower()}, {entry.success_rate_pct}% of {entry.total} samples succeeded"
        if entry.max_consecutive_failures:
            line += f", longest outage {entry.max_consecutive_failures} samples"
        lines.append(line)
    return lines
