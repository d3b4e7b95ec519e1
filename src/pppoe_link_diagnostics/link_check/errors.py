"""Exception types shared by the link checks."""

from __future__ import annotations

from pppoe_link_diagnostics.link_check.types import ErrorKind


class LinkDiagnosticsError(Exception):
    """Base class for all link diagnostics errors."""


class ProbeFailure(LinkDiagnosticsError):
    """A single probe did not succeed.

    Raised inside probe implementations and always converted into a failed
    sample by ``run_probe``; it never escapes the sampler.
    """

    def __init__(self, error_kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or error_kind.value)
        self.error_kind = error_kind


class PhaseFailure(LinkDiagnosticsError):
    """A prerequisite phase failed and downstream checks must be skipped."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CollaboratorError(LinkDiagnosticsError):
    """An adapter or session collaborator raised while running a check."""

    def __init__(self, check_name: str, message: str) -> None:
        super().__init__(f"{check_name}: {message}")
        self.check_name = check_name
        self.message = message


class EngineInvariantViolation(LinkDiagnosticsError):
    """Malformed data crossed a component boundary; this is a programming error."""


class ConfigError(LinkDiagnosticsError):
    """The configuration file could not be loaded or failed validation."""

    def __init__(self, path: str, issues: list[str]) -> None:
        detail = "; ".join(issues) if issues else "invalid configuration"
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.issues = issues
