"""Shared dataclasses and enums for the link checks."""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pppoe_link_diagnostics.link_check.ledger import HealthLedger


@dataclasses.dataclass
class CommandResult:
    cmd: list[str]
    returncode: int
    stdout: str
    stderr: str


class ErrorKind(enum.Enum):
    NONE = "none"
    TIMEOUT = "timeout"
    REFUSED = "refused"
    RESET = "reset"
    UNREACHABLE = "unreachable"
    UNKNOWN = "unknown"


class ProbeKind(enum.Enum):
    ICMP = "icmp"
    TCP = "tcp"
    DNS = "dns"


@dataclasses.dataclass(frozen=True)
class ProbeOutcome:
    """Result of one bounded connectivity test."""

    timestamp: float
    success: bool
    latency_ms: float | None = None
    error_kind: ErrorKind = ErrorKind.NONE
    detail: str = ""


@dataclasses.dataclass(frozen=True)
class SamplingConfig:
    count: int | None
    duration_s: float | None
    interval_ms: int
    timeout_ms: int


@dataclasses.dataclass
class SampleSeries:
    target: str
    kind: ProbeKind
    config: SamplingConfig
    outcomes: list[ProbeOutcome] = dataclasses.field(default_factory=list)

    def __len__(self) -> int:
        return len(self.outcomes)


@dataclasses.dataclass(frozen=True)
class DropEvent:
    """A contiguous run of failed samples."""

    start_index: int
    length: int


@dataclasses.dataclass(frozen=True)
class Stats:
    total: int
    success_count: int
    fail_count: int
    success_rate_pct: float
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    jitter_ms: float
    drop_events: tuple[DropEvent, ...]
    max_consecutive_failures: int


class StabilityClass(enum.Enum):
    STABLE = "stable"
    MOSTLY_STABLE = "mostly_stable"
    INTERMITTENT_DROPS = "intermittent_drops"
    UNSTABLE = "unstable"
    SEVERE_INSTABILITY = "severe_instability"


STABILITY_LABELS: dict[StabilityClass, str] = {
    StabilityClass.STABLE: "Stable",
    StabilityClass.MOSTLY_STABLE: "Mostly stable",
    StabilityClass.INTERMITTENT_DROPS: "Intermittent drops",
    StabilityClass.UNSTABLE: "Unstable",
    StabilityClass.SEVERE_INSTABILITY: "Severe instability",
}


class Severity(enum.Enum):
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"
    INFO = "INFO"
    SKIPPED = "N/A"


class Category(enum.Enum):
    SYSTEM = "system"
    ADAPTER = "adapter"
    LINK = "link"
    REMOTE_TERMINATION = "remote_termination"
    CREDENTIALS = "credentials"
    AUTH = "auth"
    SESSION_INTERFACE = "session_interface"
    CONNECTIVITY = "connectivity"
    STABILITY = "stability"
    DNS = "dns"
    CAPACITY = "capacity"
    ROUTE = "route"


CATEGORY_LABELS: dict[Category, str] = {
    Category.SYSTEM: "Host system",
    Category.ADAPTER: "Network adapter",
    Category.LINK: "Physical link",
    Category.REMOTE_TERMINATION: "ONT / remote termination",
    Category.CREDENTIALS: "PPP credentials",
    Category.AUTH: "PPPoE authentication",
    Category.SESSION_INTERFACE: "PPP session interface",
    Category.CONNECTIVITY: "Internet reachability",
    Category.STABILITY: "Link stability",
    Category.DNS: "DNS resolution",
    Category.CAPACITY: "Connection capacity",
    Category.ROUTE: "Upstream route",
}


@dataclasses.dataclass(frozen=True)
class CheckRecord:
    """One named check result held by the health ledger."""

    name: str
    order: int
    severity: Severity
    category: Category
    status_text: str
    timestamp: float
    sequence: int
    stats: Stats | None = None


class RootCause(enum.Enum):
    LINK_DOWN = "link_down"
    ADAPTER_MISSING = "adapter_missing"
    REMOTE_TERMINATION_UNREACHABLE = "remote_termination_unreachable"
    AUTHENTICATION_FAILED = "authentication_failed"
    CREDENTIALS_UNAVAILABLE = "credentials_unavailable"
    SESSION_INTERFACE_ABSENT = "session_interface_absent"
    EXTERNAL_REACHABILITY_FAILED = "external_reachability_failed"
    LINK_DEGRADED = "link_degraded"
    UNCLASSIFIED_PROBLEM = "unclassified_problem"


@dataclasses.dataclass(frozen=True)
class DiagnosisRule:
    root_cause: RootCause | None
    predicate: Callable[[HealthLedger], bool]
    explanation: str
    actions: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class DiagnosisResult:
    working_components: tuple[str, ...]
    problem_areas: tuple[str, ...]
    root_cause: RootCause | None
    explanation: str
    guidance: tuple[str, ...]


class SessionState(enum.Enum):
    NOT_STARTED = "not_started"
    LINK_DOWN = "link_down"
    AUTH_FAILED = "auth_failed"
    CONNECTED = "connected"


@dataclasses.dataclass(frozen=True)
class LinkStatus:
    is_up: bool
    speed_bps: int | None


@dataclasses.dataclass(frozen=True)
class AuthResult:
    success: bool
    error_code: int | None = None
    detail: str = ""


@dataclasses.dataclass(frozen=True)
class CredentialCheck:
    available: bool
    username: str | None = None
    detail: str = ""


@dataclasses.dataclass(frozen=True)
class SessionInterface:
    name: str
    ipv4_addrs: tuple[str, ...]
    next_hop: str | None
