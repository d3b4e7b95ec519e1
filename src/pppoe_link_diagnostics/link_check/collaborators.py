"""Linux adapter and PPP session collaborators used by the orchestrator."""

from __future__ import annotations

import os
import re
import shutil

from pppoe_link_diagnostics.link_check.logging_utils import DEFAULT_LOGGER, LoggingManager
from pppoe_link_diagnostics.link_check.shell import DEFAULT_SHELL, SPAWN_FAILED_RC, ShellRunner
from pppoe_link_diagnostics.link_check.types import (
    AuthResult,
    CredentialCheck,
    LinkStatus,
    SessionInterface,
)

SKIP_PREFIXES = (
    "veth",
    "docker",
    "br-",
    "virbr",
    "wg",
    "tun",
    "tap",
    "ppp",
)

WIRELESS_PREFIXES = ("wl", "wwan")

_PEER_USER_RE = re.compile(r"""^\s*user\s+["']?([^"'\s]+)["']?""", re.MULTILINE)


class AdapterManager:
    """Select the wired adapter facing the ONT and report its link state."""

    def __init__(
        self,
        *,
        shell: ShellRunner = DEFAULT_SHELL,
        logger: LoggingManager = DEFAULT_LOGGER,
        sysfs_root: str = "/sys/class/net",
    ) -> None:
        self.shell = shell
        self.logger = logger
        self.sysfs_root = sysfs_root

    def interface_exists(self, iface: str) -> bool:
        res = self.shell.run_cmd(["ip", "link", "show", "dev", iface])
        return res.returncode == 0

    def list_candidate_interfaces(self) -> list[str]:
        """
        Return physical interface names, wired first, stripping @physdev
        suffixes and excluding loopback, virtual and PPP links.
        """
        res = self.shell.run_cmd(["ip", "-o", "link", "show"])
        if res.returncode != 0:
            return []

        wired: list[str] = []
        wireless: list[str] = []
        for line in res.stdout.splitlines():
            parts = line.split(":")
            if len(parts) < 2:
                continue

            name = parts[1].strip().split("@")[0]
            if not name or name == "lo":
                continue
            if any(name.startswith(prefix) for prefix in SKIP_PREFIXES):
                continue

            if name.startswith(WIRELESS_PREFIXES):
                wireless.append(name)
            else:
                wired.append(name)

        return wired + wireless

    def select_adapter(self, preferred: str | None = None) -> str | None:
        if preferred and self.interface_exists(preferred):
            return preferred

        candidates = self.list_candidate_interfaces()
        self.logger.debug(f"Adapter candidates: {candidates}")
        if preferred:
            self.logger.log(f"[INFO] Interface '{preferred}' not found; candidates: {candidates}")
        return candidates[0] if candidates else None

    def link_status(self, iface: str) -> LinkStatus:
        res = self.shell.run_cmd(["ip", "link", "show", "dev", iface])
        is_up = res.returncode == 0 and any(
            "state UP" in line or ",LOWER_UP" in line for line in res.stdout.splitlines()
        )
        return LinkStatus(is_up=is_up, speed_bps=self._read_speed_bps(iface))

    def _read_speed_bps(self, iface: str) -> int | None:
        path = os.path.join(self.sysfs_root, iface, "speed")
        try:
            with open(path, encoding="utf-8") as fh:
                raw = fh.read().strip()
        except OSError:
            return None
        try:
            mbps = int(raw)
        except ValueError:
            return None
        # The kernel reports -1 when the speed is unknown (link down or virtual NIC).
        return mbps * 1_000_000 if mbps > 0 else None


# Exit statuses documented in pppd(8).
PPPD_EXIT_PHRASES: dict[int, str] = {
    5: "pppd was interrupted",
    7: "device error: the Ethernet port could not be opened",
    8: "device/link error: no answer from the access concentrator (PADI timeout)",
    10: "PPP negotiation failed",
    11: "the peer failed to authenticate itself",
    15: "no answer from remote: LCP echo requests went unanswered",
    16: "port disconnected: the link hung up",
    19: "bad credentials: authentication was rejected by the provider",
}


def describe_auth_error(code: int | None) -> str:
    """Translate a pppd exit status into a readable phrase."""
    if code is None:
        return "authentication failed for an unknown reason"
    if code == SPAWN_FAILED_RC:
        return "pppd could not be started or did not finish before the timeout"
    return PPPD_EXIT_PHRASES.get(code, f"pppd exited with code {code}")


class SessionManager:
    """Bring up and inspect a PPPoE session through pppd peer files."""

    def __init__(
        self,
        *,
        shell: ShellRunner = DEFAULT_SHELL,
        logger: LoggingManager = DEFAULT_LOGGER,
        peers_dir: str = "/etc/ppp/peers",
        secrets_files: tuple[str, ...] = ("/etc/ppp/chap-secrets", "/etc/ppp/pap-secrets"),
        auth_timeout_s: float = 30.0,
    ) -> None:
        self.shell = shell
        self.logger = logger
        self.peers_dir = peers_dir
        self.secrets_files = secrets_files
        self.auth_timeout_s = auth_timeout_s

    def credentials_available(self, peer: str) -> CredentialCheck:
        """Check that ``peer`` names a user with a matching secrets entry.

        Only the username is read; secrets are matched by their first field so
        passwords never leave the file.
        """
        peer_path = os.path.join(self.peers_dir, peer)
        try:
            with open(peer_path, encoding="utf-8", errors="replace") as fh:
                peer_text = fh.read()
        except OSError as exc:
            return CredentialCheck(available=False, detail=f"cannot read {peer_path}: {exc.strerror or exc}")

        match = _PEER_USER_RE.search(peer_text)
        if not match:
            return CredentialCheck(available=False, detail=f"{peer_path} has no 'user' line")
        username = match.group(1)

        for secrets_path in self.secrets_files:
            if self._secrets_have_user(secrets_path, username):
                return CredentialCheck(available=True, username=username, detail=secrets_path)
        return CredentialCheck(
            available=False,
            username=username,
            detail=f"no secret for {username!r} in {', '.join(self.secrets_files)}",
        )

    def _secrets_have_user(self, path: str, username: str) -> bool:
        try:
            with open(path, encoding="utf-8", errors="replace") as fh:
                lines = fh.readlines()
        except OSError:
            return False
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            first = stripped.split()[0].strip("\"'")
            if first == username:
                return True
        return False

    def authenticate(self, peer: str) -> AuthResult:
        """Run ``pppd call <peer> updetach``; pppd exits once the link is up."""
        res = self.shell.run_cmd(["pppd", "call", peer, "updetach"], timeout=self.auth_timeout_s)
        if res.returncode == 0:
            return AuthResult(success=True)
        output_lines = (res.stderr.strip() or res.stdout.strip()).splitlines()
        detail = output_lines[-1] if output_lines else ""
        return AuthResult(success=False, error_code=res.returncode, detail=detail)

    def session_interface(self, name: str) -> SessionInterface | None:
        res = self.shell.run_cmd(["ip", "-4", "addr", "show", "dev", name])
        if res.returncode != 0:
            return None

        addrs: list[str] = []
        next_hop: str | None = None
        for line in res.stdout.splitlines():
            parts = line.strip().split()
            if len(parts) >= 2 and parts[0] == "inet":
                addrs.append(parts[1])
                # Point-to-point links list the remote end as "peer <addr>".
                if "peer" in parts:
                    idx = parts.index("peer")
                    if idx + 1 < len(parts):
                        next_hop = parts[idx + 1].split("/")[0]
        return SessionInterface(name=name, ipv4_addrs=tuple(addrs), next_hop=next_hop)


def default_route_interface(*, shell: ShellRunner = DEFAULT_SHELL) -> str | None:
    """Return the interface carrying the IPv4 default route, if any."""
    res = shell.run_cmd(["ip", "route", "show", "default"])
    if res.returncode != 0:
        return None
    for line in res.stdout.splitlines():
        parts = line.split()
        if parts[:1] == ["default"] and "dev" in parts:
            idx = parts.index("dev")
            if idx + 1 < len(parts):
                return parts[idx + 1]
    return None


def missing_tools(tools: tuple[str, ...] = ("ip", "ping", "getent", "pppd", "traceroute")) -> list[str]:
    return [tool for tool in tools if shutil.which(tool) is None]


def traceroute_hops(target: str, *, max_hops: int = 20, shell: ShellRunner = DEFAULT_SHELL) -> list[str]:
    """Return one line per hop from ``traceroute -n``; empty when it cannot run."""
    res = shell.run_cmd(
        ["traceroute", "-n", "-w", "2", "-q", "1", "-m", str(max_hops), target],
        timeout=max_hops * 3 + 5,
    )
    if res.returncode != 0:
        return []
    hops: list[str] = []
    for line in res.stdout.splitlines():
        stripped = line.strip()
        if stripped and stripped.split()[0].isdigit():
            hops.append(stripped)
    return hops
