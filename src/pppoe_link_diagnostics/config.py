"""Load and validate the YAML configuration for a diagnostics session."""

from __future__ import annotations

import dataclasses
import ipaddress
import os
from typing import Any

import yaml
from yaml import YAMLError

from pppoe_link_diagnostics.link_check.errors import ConfigError


@dataclasses.dataclass
class AdapterSettings:
    interface: str | None = None
    min_speed_mbps: int = 100


@dataclasses.dataclass
class SessionSettings:
    peer: str = "dsl-provider"
    interface: str = "ppp0"
    peers_dir: str = "/etc/ppp/peers"
    secrets_files: list[str] = dataclasses.field(
        default_factory=lambda: ["/etc/ppp/chap-secrets", "/etc/ppp/pap-secrets"]
    )
    auth_timeout_s: float = 30.0
    remote_termination: str | None = None
    skip_auth: bool = False


@dataclasses.dataclass
class TargetSettings:
    public_ip: str = "1.1.1.1"
    dns_name: str = "example.com"
    tcp_host: str = "example.com"
    tcp_port: int = 443
    capacity_hosts: list[str] = dataclasses.field(
        default_factory=lambda: ["1.1.1.1", "8.8.8.8", "9.9.9.9", "208.67.222.222"]
    )
    traceroute_target: str = "1.1.1.1"


@dataclasses.dataclass
class SamplingSettings:
    probe_timeout_ms: int = 2000
    interval_ms: int = 200
    basic_count: int = 4
    stability_duration_s: float = 30.0
    jitter_count: int = 20
    dns_count: int = 10
    rate_burst_count: int = 20
    capacity_workers: int = 8
    phase_timeout_s: float = 15.0


@dataclasses.dataclass
class DiagnosticsConfig:
    adapter: AdapterSettings = dataclasses.field(default_factory=AdapterSettings)
    session: SessionSettings = dataclasses.field(default_factory=SessionSettings)
    targets: TargetSettings = dataclasses.field(default_factory=TargetSettings)
    sampling: SamplingSettings = dataclasses.field(default_factory=SamplingSettings)


SECTIONS: dict[str, type] = {
    "adapter": AdapterSettings,
    "session": SessionSettings,
    "targets": TargetSettings,
    "sampling": SamplingSettings,
}

_ADDRESS_KEYS = {("targets", "public_ip"), ("targets", "traceroute_target"), ("session", "remote_termination")}

_POSITIVE_KEYS = {
    ("adapter", "min_speed_mbps"),
    ("session", "auth_timeout_s"),
    ("targets", "tcp_port"),
    ("sampling", "probe_timeout_ms"),
    ("sampling", "basic_count"),
    ("sampling", "jitter_count"),
    ("sampling", "dns_count"),
    ("sampling", "rate_burst_count"),
    ("sampling", "capacity_workers"),
    ("sampling", "phase_timeout_s"),
}

_NON_NEGATIVE_KEYS = {("sampling", "interval_ms"), ("sampling", "stability_duration_s")}

_INTEGER_KEYS = {
    ("adapter", "min_speed_mbps"),
    ("targets", "tcp_port"),
    ("sampling", "probe_timeout_ms"),
    ("sampling", "interval_ms"),
    ("sampling", "basic_count"),
    ("sampling", "jitter_count"),
    ("sampling", "dns_count"),
    ("sampling", "rate_burst_count"),
    ("sampling", "capacity_workers"),
}

_BOOL_KEYS = {("session", "skip_auth")}

_STRING_KEYS = {
    ("adapter", "interface"),
    ("session", "peer"),
    ("session", "interface"),
    ("session", "peers_dir"),
    ("targets", "dns_name"),
    ("targets", "tcp_host"),
}

# Keys whose default is None and may be left unset explicitly.
_NULLABLE_KEYS = {("adapter", "interface")}


def _field_names(section_type: type) -> set[str]:
    return {field.name for field in dataclasses.fields(section_type)}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_address(value: Any, where: str) -> list[str]:
    """Accept IP literals and host names; reject malformed IP-looking values."""
    if value is None:
        return []
    if not isinstance(value, str) or not value.strip():
        return [f"{where} should be an address or host name, got {value!r}"]
    if value.replace(".", "").isdigit():
        try:
            ipaddress.ip_address(value)
        except ValueError:
            return [f"{where} has invalid address '{value}'"]
    return []


def validate_config(data: Any) -> list[str]:
    """Return a list of issues found in a parsed configuration mapping."""
    if data is None:
        return []
    if not isinstance(data, dict):
        return [f"top level should be a mapping, got {type(data).__name__}"]

    issues: list[str] = []
    for section, values in data.items():
        if section not in SECTIONS:
            issues.append(f"unknown section '{section}' (expected one of {sorted(SECTIONS)})")
            continue
        if values is None:
            continue
        if not isinstance(values, dict):
            issues.append(f"section '{section}' should be a mapping")
            continue

        known = _field_names(SECTIONS[section])
        for key, value in values.items():
            where = f"{section}.{key}"
            if key not in known:
                issues.append(f"unknown key '{where}'")
                continue
            if (section, key) in _ADDRESS_KEYS:
                issues.extend(_validate_address(value, where))
            elif (section, key) in _BOOL_KEYS:
                if not isinstance(value, bool):
                    issues.append(f"{where} should be true or false, got {value!r}")
            elif (section, key) in _STRING_KEYS:
                if value is None and (section, key) in _NULLABLE_KEYS:
                    continue
                if not isinstance(value, str) or not value.strip():
                    issues.append(f"{where} should be a non-empty string, got {value!r}")
            elif (section, key) in _INTEGER_KEYS and _is_number(value) and not isinstance(value, int):
                issues.append(f"{where} should be a whole number, got {value!r}")
            elif (section, key) in _POSITIVE_KEYS:
                if not _is_number(value) or value <= 0:
                    issues.append(f"{where} should be a positive number, got {value!r}")
            elif (section, key) in _NON_NEGATIVE_KEYS:
                if not _is_number(value) or value < 0:
                    issues.append(f"{where} should be zero or more, got {value!r}")
            elif key in ("capacity_hosts", "secrets_files"):
                if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                    issues.append(f"{where} should be a list of strings")
                elif key == "capacity_hosts":
                    for item in value:
                        issues.extend(_validate_address(item, where))

    return issues


def config_from_mapping(data: dict[str, Any] | None) -> DiagnosticsConfig:
    """Build a config from an already validated mapping; missing keys keep defaults."""
    config = DiagnosticsConfig()
    for section, values in (data or {}).items():
        if values:
            current = getattr(config, section)
            setattr(config, section, dataclasses.replace(current, **values))
    return config


def load_config(path: str | None) -> DiagnosticsConfig:
    """Load ``path`` or return defaults when no path is given.

    Raises ``ConfigError`` when the file cannot be read, parsed or validated.
    """
    if path is None:
        return DiagnosticsConfig()
    if not os.path.exists(path):
        raise ConfigError(path, ["file does not exist"])

    try:
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except YAMLError as exc:
        raise ConfigError(path, [f"failed to parse ({exc})"]) from exc
    except OSError as exc:
        raise ConfigError(path, [f"failed to read ({exc})"]) from exc

    issues = validate_config(data)
    if issues:
        raise ConfigError(path, issues)
    return config_from_mapping(data)
