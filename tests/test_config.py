"""Tests for configuration loading and validation."""

import textwrap
from pathlib import Path

import pytest

from pppoe_link_diagnostics import config as config_module
from pppoe_link_diagnostics.link_check.errors import ConfigError


def _write(tmp_path, text):
    path = tmp_path / "diag.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(path)


def test_defaults_without_path():
    config = config_module.load_config(None)

    assert config.session.peer == "dsl-provider"
    assert config.session.interface == "ppp0"
    assert config.targets.tcp_port == 443
    assert config.sampling.capacity_workers == 8


def test_load_overrides_only_given_keys(tmp_path):
    path = _write(
        tmp_path,
        """
        adapter:
          interface: enp3s0
        session:
          peer: fibre
          remote_termination: 192.168.100.1
        sampling:
          stability_duration_s: 120
        """,
    )

    config = config_module.load_config(path)

    assert config.adapter.interface == "enp3s0"
    assert config.session.peer == "fibre"
    assert config.session.interface == "ppp0"
    assert config.session.remote_termination == "192.168.100.1"
    assert config.sampling.stability_duration_s == 120
    assert config.sampling.jitter_count == 20


def test_empty_file_gives_defaults(tmp_path):
    assert config_module.load_config(_write(tmp_path, "")) == config_module.DiagnosticsConfig()


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        config_module.load_config(str(tmp_path / "absent.yaml"))

    assert excinfo.value.issues == ["file does not exist"]


def test_invalid_yaml_raises(tmp_path):
    path = _write(tmp_path, "session: [unclosed\n")

    with pytest.raises(ConfigError) as excinfo:
        config_module.load_config(path)

    assert "failed to parse" in excinfo.value.issues[0]


def test_validate_config_collects_every_issue():
    issues = config_module.validate_config(
        {
            "adapters": {},
            "session": {"peer": "isp", "password": "x"},
            "targets": {"public_ip": "999.1.1.1", "tcp_port": 0, "capacity_hosts": "1.1.1.1"},
            "sampling": {"interval_ms": -5, "basic_count": True},
        }
    )

    assert issues == [
        "unknown section 'adapters' (expected one of ['adapter', 'sampling', 'session', 'targets'])",
        "unknown key 'session.password'",
        "targets.public_ip has invalid address '999.1.1.1'",
        "targets.tcp_port should be a positive number, got 0",
        "targets.capacity_hosts should be a list of strings",
        "sampling.interval_ms should be zero or more, got -5",
        "sampling.basic_count should be a positive number, got True",
    ]


@pytest.mark.parametrize(
    "data",
    [
        None,
        {"targets": {"public_ip": "1.1.1.1", "dns_name": "example.net", "traceroute_target": "one.one.one.one"}},
        {"targets": {"capacity_hosts": ["8.8.8.8", "dns.quad9.net"]}},
        {"session": None},
        {"sampling": {"stability_duration_s": 0}},
    ],
)
def test_validate_config_accepts_valid_mappings(data):
    assert config_module.validate_config(data) == []


def test_validate_config_rejects_non_mapping():
    assert config_module.validate_config(["adapter"]) == ["top level should be a mapping, got list"]


def test_load_config_reports_validation_issues(tmp_path):
    path = _write(
        tmp_path,
        """
        sampling:
          capacity_workers: 0
        """,
    )

    with pytest.raises(ConfigError) as excinfo:
        config_module.load_config(path)

    assert excinfo.value.issues == ["sampling.capacity_workers should be a positive number, got 0"]
    assert path in str(excinfo.value)


def test_shipped_example_config_is_valid():
    example = Path(__file__).resolve().parents[1] / "config" / "link-diagnostics.example.yaml"

    config = config_module.load_config(str(example))

    assert config.session.remote_termination == "192.168.100.1"
    assert config.targets.capacity_hosts[-1] == "208.67.222.222"


@pytest.mark.parametrize(
    ("data", "issue"),
    [
        ({"session": {"skip_auth": "no"}}, "session.skip_auth should be true or false, got 'no'"),
        ({"session": {"skip_auth": 0}}, "session.skip_auth should be true or false, got 0"),
        ({"session": {"peer": 42}}, "session.peer should be a non-empty string, got 42"),
        ({"session": {"interface": ""}}, "session.interface should be a non-empty string, got ''"),
        (
            {"targets": {"dns_name": ["example.com"]}},
            "targets.dns_name should be a non-empty string, got ['example.com']",
        ),
        ({"targets": {"tcp_host": None}}, "targets.tcp_host should be a non-empty string, got None"),
        ({"sampling": {"jitter_count": 2.5}}, "sampling.jitter_count should be a whole number, got 2.5"),
        ({"sampling": {"capacity_workers": 4.0}}, "sampling.capacity_workers should be a whole number, got 4.0"),
        ({"targets": {"tcp_port": 443.5}}, "targets.tcp_port should be a whole number, got 443.5"),
    ],
)
def test_validate_config_checks_value_types(data, issue):
    assert config_module.validate_config(data) == [issue]


def test_validate_config_keeps_fractional_durations_and_unset_interface():
    data = {
        "adapter": {"interface": None},
        "session": {"skip_auth": True, "auth_timeout_s": 12.5},
        "sampling": {"stability_duration_s": 7.5, "phase_timeout_s": 2.5},
    }

    assert config_module.validate_config(data) == []


def test_quoted_boolean_does_not_skip_authentication(tmp_path):
    path = _write(
        tmp_path,
        """
        session:
          skip_auth: "no"
        """,
    )

    with pytest.raises(ConfigError) as excinfo:
        config_module.load_config(path)

    assert excinfo.value.issues == ["session.skip_auth should be true or false, got 'no'"]
