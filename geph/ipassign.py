"""Allocation of client addresses inside the exit's VPN network."""

from __future__ import annotations

import functools
import ipaddress
import logging
import random
import struct
import threading
from typing import ClassVar, Optional, Union

from geph.lists import port_allowed
from geph.packets import PROTO_TCP, PROTO_UDP, _split_ipv4

log = logging.getLogger(__name__)

CGNAT_NETWORK = "100.64.0.0/10"

_PRIVATE_NETWORKS = tuple(
    ipaddress.IPv4Network(net) for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
)
_LOOPBACK = ipaddress.IPv4Network("127.0.0.0/8")
_UNSPECIFIED = ipaddress.IPv4Address("0.0.0.0")
_BROADCAST = ipaddress.IPv4Address("255.255.255.255")


class IpAddrAssigner:
    """Hands out random unused addresses from a network, keeping a table of them."""

    _global: ClassVar[Optional["IpAddrAssigner"]] = None
    _global_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, cidr: Union[str, ipaddress.IPv4Network]) -> None:
        self.cidr = ipaddress.IPv4Network(cidr)
        self._table: set[ipaddress.IPv4Address] = set()
        self._lock = threading.Lock()

    @classmethod
    def global_instance(cls) -> "IpAddrAssigner":
        """Return the shared assigner for the carrier-grade NAT range."""
        with cls._global_lock:
            if cls._global is None:
                cls._global = cls(CGNAT_NETWORK)
            return cls._global

    def assign(self) -> "AssignedIpv4Addr":
        """Assign a fresh address, keeping 16 addresses clear at each end."""
        low = int(self.cidr.network_address) + 16
        high = int(self.cidr.broadcast_address) - 16
        if high <= low:
            raise ValueError(f"network {self.cidr} is too small to assign from")
        while True:
            candidate = ipaddress.IPv4Address(random.randrange(low, high))
            with self._lock:
                if candidate not in self._table:
                    self._table.add(candidate)
                    log.debug("assigned %s", candidate)
                    return AssignedIpv4Addr(self, candidate)

    def is_assigned(self, address: Union[str, ipaddress.IPv4Address]) -> bool:
        """Return whether the address is currently handed out."""
        with self._lock:
            return ipaddress.IPv4Address(address) in self._table

    def _release(self, address: ipaddress.IPv4Address) -> None:
        with self._lock:
            if address not in self._table:
                raise RuntimeError(f"AssignedIpv4Addr double free?! {address}")
            self._table.remove(address)


@functools.total_ordering
class AssignedIpv4Addr:
    """An address held from an assigner until released; usable as a context manager."""

    __slots__ = ("_assigner", "addr")

    def __init__(self, assigner: IpAddrAssigner, addr: ipaddress.IPv4Address) -> None:
        self._assigner = assigner
        self.addr = addr

    def release(self) -> None:
        """Return the address to its assigner."""
        log.debug("dropped %s", self.addr)
        self._assigner._release(self.addr)

    def __enter__(self) -> "AssignedIpv4Addr":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssignedIpv4Addr):
            return NotImplemented
        return self.addr == other.addr

    def __lt__(self, other: "AssignedIpv4Addr") -> bool:
        if not isinstance(other, AssignedIpv4Addr):
            return NotImplemented
        return self.addr < other.addr

    def __hash__(self) -> int:
        return hash(self.addr)

    def __str__(self) -> str:
        return str(self.addr)

    def __repr__(self) -> str:
        return f"AssignedIpv4Addr({self.addr})"


def _banned_destination(dest: ipaddress.IPv4Address) -> bool:
    return (
        dest in _LOOPBACK
        or any(dest in net for net in _PRIVATE_NETWORKS)
        or dest == _UNSPECIFIED
        or dest == _BROADCAST
    )


def _destination_port(protocol: int, payload: bytes) -> Optional[int]:
    if protocol == PROTO_TCP and len(payload) >= 20:
        return struct.unpack(">H", payload[2:4])[0]
    if protocol == PROTO_UDP and len(payload) >= 8:
        return struct.unpack(">H", payload[2:4])[0]
    return None


def admit_packet(
    packet: bytes,
    assigned: Union[AssignedIpv4Addr, str, ipaddress.IPv4Address],
    port_whitelist: bool,
) -> bool:
    """Decide whether an upstream client packet may be written to the tunnel."""
    expected = (
        assigned.addr
        if isinstance(assigned, AssignedIpv4Addr)
        else ipaddress.IPv4Address(assigned)
    )
    parts = _split_ipv4(packet)
    if parts is None:
        return False
    _, payload = parts
    source = ipaddress.IPv4Address(bytes(packet[12:16]))
    dest = ipaddress.IPv4Address(bytes(packet[16:20]))
    if source != expected or _banned_destination(dest):
        return False
    port = _destination_port(packet[9], payload)
    if port is not None and not port_allowed(port, port_whitelist):
        return False
    return True