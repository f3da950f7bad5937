"""Bridge-side NAT route management toward exits."""

from __future__ import annotations

import ipaddress
import logging
import subprocess
from collections.abc import Callable
from typing import Optional, Union

log = logging.getLogger(__name__)

IpLike = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]


def run_command(command: str) -> subprocess.CompletedProcess:
    """Run a shell command line, capturing its output."""
    log.info("running command %s", command)
    return subprocess.run(["sh", "-c", command], capture_output=True, check=False)


def dnat_rules(local_port: int, remote_ip: IpLike, remote_port: int) -> tuple[str, str]:
    """Return the shell commands that add and delete the forwarding rules."""
    ip = ipaddress.ip_address(remote_ip)
    target = f"{ip}:{remote_port}"
    add = (
        f"iptables -t nat -A PREROUTING -p udp --dport {local_port} -j DNAT --to-destination {target};"
        f"iptables -t nat -A PREROUTING -p tcp --dport {local_port} -j DNAT --to-destination {target}; "
    )
    delete = (
        f"iptables -t nat -D PREROUTING -p udp --dport {local_port} -j DNAT --to-destination {target}; "
        f"iptables -t nat -D PREROUTING -p tcp --dport {local_port} -j DNAT --to-destination {target}"
    )
    return add, delete


class RouteManager:
    """Keeps one forwarding route from a local port to an exit's current port."""

    def __init__(
        self,
        local_port: int,
        remote_ip: IpLike,
        runner: Callable[[str], object] = run_command,
    ) -> None:
        self.local_port = local_port
        self.remote_ip = ipaddress.ip_address(remote_ip)
        self._runner = runner
        self._delete_command: Optional[str] = None
        self.remote_port = 0

    def update(self, remote_port: int) -> bool:
        """Point the route at ``remote_port``; return whether any rule changed."""
        if remote_port == self.remote_port:
            return False
        if self._delete_command is not None:
            self._runner(self._delete_command)
            self._delete_command = None
        add, delete = dnat_rules(self.local_port, self.remote_ip, remote_port)
        self._runner(add)
        self._delete_command = delete
        self.remote_port = remote_port
        return True