"""Tests for the adapter and PPP session collaborators."""

import pytest

from pppoe_link_diagnostics.link_check import collaborators
from pppoe_link_diagnostics.link_check.shell import SPAWN_FAILED_RC
from pppoe_link_diagnostics.link_check.types import CommandResult
from tests.helpers import RecordingLogger, StubShell

IP_LINK_OUTPUT = """1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN mode DEFAULT
2: wlp2s0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP mode DORMANT
3: enp3s0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP mode DEFAULT
4: docker0: <NO-CARRIER,BROADCAST,MULTICAST,UP> mtu 1500 qdisc noqueue state DOWN mode DEFAULT
5: veth12ab@if4: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue master docker0 state UP
6: eth1@enp3s0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP mode DEFAULT
7: ppp0: <POINTOPOINT,MULTICAST,NOARP,UP,LOWER_UP> mtu 1492 qdisc fq_codel state UNKNOWN
"""


def _result(cmd, returncode=0, stdout="", stderr=""):
    return CommandResult(cmd=list(cmd), returncode=returncode, stdout=stdout, stderr=stderr)


def _adapters(responses, sysfs_root="/nonexistent"):
    return collaborators.AdapterManager(shell=StubShell(responses), logger=RecordingLogger(), sysfs_root=sysfs_root)


def test_candidate_interfaces_prefer_wired_and_skip_virtual():
    cmd = ("ip", "-o", "link", "show")
    adapters = _adapters({cmd: _result(cmd, stdout=IP_LINK_OUTPUT)})

    assert adapters.list_candidate_interfaces() == ["enp3s0", "eth1", "wlp2s0"]


def test_candidate_interfaces_empty_when_ip_fails():
    assert _adapters({}).list_candidate_interfaces() == []


def test_select_adapter_keeps_existing_preference():
    cmd = ("ip", "link", "show", "dev", "eno1")
    adapters = _adapters({cmd: _result(cmd)})

    assert adapters.select_adapter("eno1") == "eno1"


def test_select_adapter_falls_back_to_first_candidate():
    cmd = ("ip", "-o", "link", "show")
    adapters = _adapters({cmd: _result(cmd, stdout=IP_LINK_OUTPUT)})

    assert adapters.select_adapter("eth9") == "enp3s0"
    assert any("eth9" in msg for msg in adapters.logger.messages)


def test_select_adapter_none_without_candidates():
    assert _adapters({}).select_adapter() is None


def test_link_status_reads_state_and_speed(tmp_path):
    (tmp_path / "enp3s0").mkdir()
    (tmp_path / "enp3s0" / "speed").write_text("1000\n", encoding="utf-8")
    cmd = ("ip", "link", "show", "dev", "enp3s0")
    line = "3: enp3s0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP mode DEFAULT"
    adapters = _adapters({cmd: _result(cmd, stdout=line)}, sysfs_root=str(tmp_path))

    status = adapters.link_status("enp3s0")

    assert status.is_up is True
    assert status.speed_bps == 1_000_000_000


def test_link_status_reports_no_carrier_and_unknown_speed(tmp_path):
    (tmp_path / "enp3s0").mkdir()
    (tmp_path / "enp3s0" / "speed").write_text("-1\n", encoding="utf-8")
    cmd = ("ip", "link", "show", "dev", "enp3s0")
    line = "3: enp3s0: <NO-CARRIER,BROADCAST,MULTICAST,UP> mtu 1500 qdisc fq_codel state DOWN mode DEFAULT"
    adapters = _adapters({cmd: _result(cmd, stdout=line)}, sysfs_root=str(tmp_path))

    status = adapters.link_status("enp3s0")

    assert status.is_up is False
    assert status.speed_bps is None


@pytest.fixture
def ppp_files(tmp_path):
    peers = tmp_path / "peers"
    peers.mkdir()
    (peers / "isp").write_text('plugin rp-pppoe.so eth0\nuser "alice@isp.example"\nnoipdefault\n', encoding="utf-8")
    (peers / "nouser").write_text("plugin rp-pppoe.so eth0\n", encoding="utf-8")
    chap = tmp_path / "chap-secrets"
    chap.write_text('# client server secret\n"bob@isp.example" * "hunter2"\n', encoding="utf-8")
    pap = tmp_path / "pap-secrets"
    pap.write_text('"alice@isp.example" * "s3cret"\n', encoding="utf-8")
    return tmp_path


def _session(ppp_files, responses=None, secrets=("chap-secrets", "pap-secrets")):
    return collaborators.SessionManager(
        shell=StubShell(responses or {}),
        logger=RecordingLogger(),
        peers_dir=str(ppp_files / "peers"),
        secrets_files=tuple(str(ppp_files / name) for name in secrets),
        auth_timeout_s=12,
    )


def test_credentials_found_in_second_secrets_file(ppp_files):
    check = _session(ppp_files).credentials_available("isp")

    assert check.available is True
    assert check.username == "alice@isp.example"
    assert check.detail.endswith("pap-secrets")
    assert "s3cret" not in check.detail


def test_credentials_missing_secret(ppp_files):
    check = _session(ppp_files, secrets=("chap-secrets",)).credentials_available("isp")

    assert check.available is False
    assert "alice@isp.example" in check.detail


def test_credentials_missing_user_line(ppp_files):
    check = _session(ppp_files).credentials_available("nouser")

    assert check.available is False
    assert "no 'user' line" in check.detail


def test_credentials_missing_peer_file(ppp_files):
    check = _session(ppp_files).credentials_available("absent")

    assert check.available is False
    assert "cannot read" in check.detail


def test_authenticate_success(ppp_files):
    cmd = ("pppd", "call", "isp", "updetach")
    manager = _session(ppp_files, {cmd: _result(cmd)})

    result = manager.authenticate("isp")

    assert result.success is True
    assert manager.shell.calls == [(list(cmd), 12)]


def test_authenticate_reports_pppd_exit_code(ppp_files):
    cmd = ("pppd", "call", "isp", "updetach")
    output = "PAP authentication failed\nModem hangup\n"
    manager = _session(ppp_files, {cmd: _result(cmd, returncode=19, stderr=output)})

    result = manager.authenticate("isp")

    assert result.success is False
    assert result.error_code == 19
    assert result.detail == "Modem hangup"


@pytest.mark.parametrize(
    ("code", "phrase"),
    [
        (19, "bad credentials"),
        (8, "PADI timeout"),
        (16, "hung up"),
        (15, "LCP echo"),
        (SPAWN_FAILED_RC, "could not be started"),
        (42, "exited with code 42"),
        (None, "unknown reason"),
    ],
)
def test_describe_auth_error(code, phrase):
    assert phrase in collaborators.describe_auth_error(code)


def test_session_interface_parses_peer_address(ppp_files):
    cmd = ("ip", "-4", "addr", "show", "dev", "ppp0")
    stdout = (
        "7: ppp0: <POINTOPOINT,MULTICAST,NOARP,UP,LOWER_UP> mtu 1492 qdisc fq_codel state UNKNOWN\n"
        "    inet 203.0.113.45 peer 203.0.113.1/32 scope global ppp0\n"
        "       valid_lft forever preferred_lft forever\n"
    )
    manager = _session(ppp_files, {cmd: _result(cmd, stdout=stdout)})

    intf = manager.session_interface("ppp0")

    assert intf.ipv4_addrs == ("203.0.113.45",)
    assert intf.next_hop == "203.0.113.1"


def test_session_interface_without_address(ppp_files):
    cmd = ("ip", "-4", "addr", "show", "dev", "ppp0")
    stdout = "7: ppp0: <POINTOPOINT,MULTICAST,NOARP,UP,LOWER_UP> mtu 1492 state UNKNOWN\n"
    manager = _session(ppp_files, {cmd: _result(cmd, stdout=stdout)})

    intf = manager.session_interface("ppp0")

    assert intf.ipv4_addrs == ()
    assert intf.next_hop is None


def test_session_interface_absent(ppp_files):
    assert _session(ppp_files).session_interface("ppp0") is None


def test_default_route_interface():
    cmd = ("ip", "route", "show", "default")
    shell = StubShell({cmd: _result(cmd, stdout="default dev ppp0 scope link \n")})

    assert collaborators.default_route_interface(shell=shell) == "ppp0"


def test_default_route_interface_missing():
    cmd = ("ip", "route", "show", "default")
    shell = StubShell({cmd: _result(cmd, stdout="")})

    assert collaborators.default_route_interface(shell=shell) is None


def test_missing_tools(monkeypatch):
    monkeypatch.setattr(collaborators.shutil, "which", lambda tool: None if tool == "pppd" else f"/usr/bin/{tool}")

    assert collaborators.missing_tools() == ["pppd"]


def test_traceroute_hops_keeps_numbered_lines():
    cmd = ("traceroute", "-n", "-w", "2", "-q", "1", "-m", "5", "1.1.1.1")
    stdout = (
        "traceroute to 1.1.1.1 (1.1.1.1), 5 hops max, 60 byte packets\n"
        " 1  203.0.113.1  4.101 ms\n"
        " 2  *\n"
        " 3  1.1.1.1  9.870 ms\n"
    )
    shell = StubShell({cmd: _result(cmd, stdout=stdout)})

    hops = collaborators.traceroute_hops("1.1.1.1", max_hops=5, shell=shell)

    assert hops == ["1  203.0.113.1  4.101 ms", "2  *", "3  1.1.1.1  9.870 ms"]
    assert shell.calls[0][1] == 20


def test_traceroute_hops_empty_on_failure():
    assert collaborators.traceroute_hops("1.1.1.1", shell=StubShell()) == []
