"""IPv4 packet inspection and rewriting for the client VPN path."""

from __future__ import annotations

import ipaddress
import struct
import threading
from typing import Optional, Union

PROTO_TCP = 6
PROTO_UDP = 17
TCP_SYN = 0x02
TCP_ACK = 0x10
DNS_PORT = 53
DNS_RESOLVER = ipaddress.IPv4Address("1.1.1.1")

_IPV4_MIN_HEADER = 20
_TCP_MIN_HEADER = 20
_UDP_HEADER = 8

AddressLike = Union[str, int, bytes, ipaddress.IPv4Address]


class DnsNat:
    """A small thread-safe table mapping DNS client ports to original resolvers."""

    def __init__(self) -> None:
        self._table: dict[int, ipaddress.IPv4Address] = {}
        self._lock = threading.Lock()

    def remember(self, port: int, address: AddressLike) -> None:
        """Record that queries from ``port`` were originally sent to ``address``."""
        with self._lock:
            self._table[port] = ipaddress.IPv4Address(address)

    def lookup(self, port: int) -> Optional[ipaddress.IPv4Address]:
        """Return the original resolver for ``port``, or None if unknown."""
        with self._lock:
            return self._table.get(port)


def _ones_complement_sum(data: bytes) -> int:
    if len(data) % 2:
        data = data + b"\x00"
    total = sum(word for (word,) in struct.iter_unpack(">H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return total


def _checksum(data: bytes) -> int:
    return ~_ones_complement_sum(data) & 0xFFFF


def _split_ipv4(packet: bytes) -> Optional[tuple[int, bytes]]:
    """Return the header length and payload of an IPv4 packet, or None."""
    if len(packet) < _IPV4_MIN_HEADER:
        return None
    header_len = (packet[0] & 0x0F) * 4
    if header_len < _IPV4_MIN_HEADER or header_len > len(packet):
        return None
    total_len = int.from_bytes(packet[2:4], "big")
    end = min(max(total_len, header_len), len(packet))
    return header_len, bytes(packet[header_len:end])


def _udp_ports(packet: bytes) -> Optional[tuple[int, int]]:
    """Return (source, destination) ports of a UDP-in-IPv4 packet, or None."""
    parts = _split_ipv4(packet)
    if parts is None or packet[9] != PROTO_UDP:
        return None
    _, payload = parts
    if len(payload) < _UDP_HEADER:
        return None
    source, dest = struct.unpack(">HH", payload[:4])
    return source, dest


def ipv4_checksum(header: bytes) -> int:
    """Compute the IPv4 header checksum, ignoring the stored checksum field."""
    header = bytes(header)
    return _checksum(header[:10] + b"\x00\x00" + header[12:])


def _udp_checksum(udp: bytes, source: bytes, dest: bytes) -> int:
    pseudo = source + dest + bytes((0, PROTO_UDP)) + len(udp).to_bytes(2, "big")
    return _checksum(pseudo + udp[:6] + b"\x00\x00" + udp[8:])


def ack_decimate(packet: bytes) -> Optional[int]:
    """Return a flow hash if the packet is a bare TCP ACK that may be dropped."""
    parts = _split_ipv4(packet)
    if parts is None:
        return None
    _, tcp = parts
    if len(tcp) < _TCP_MIN_HEADER:
        return None
    flags = ((tcp[12] & 0x01) << 8) | tcp[13]
    data_offset = (tcp[12] >> 4) * 4
    tcp_payload = tcp[data_offset:]
    if flags & TCP_ACK and not flags & TCP_SYN and not tcp_payload:
        source, dest = struct.unpack(">HH", tcp[:4])
        return dest ^ source
    return None


def fix_all_checksums(packet: bytes) -> Optional[bytes]:
    """Recompute the UDP and IPv4 header checksums, returning the new packet."""
    parts = _split_ipv4(packet)
    if parts is None:
        return None
    header_len, payload = parts
    if len(payload) < _UDP_HEADER:
        return None
    out = bytearray(packet)
    udp = bytearray(payload)
    udp[6:8] = _udp_checksum(bytes(udp), bytes(out[12:16]), bytes(out[16:20])).to_bytes(
        2, "big"
    )
    out[header_len : header_len + len(udp)] = udp
    out[10:12] = ipv4_checksum(bytes(out[:header_len])).to_bytes(2, "big")
    return bytes(out)


def fix_dns_dest(packet: bytes, nat: DnsNat) -> Optional[bytes]:
    """Redirect an outgoing DNS query to the fixed resolver, remembering the original."""
    ports = _udp_ports(packet)
    if ports is None:
        return None
    source, dest = ports
    if dest != DNS_PORT:
        return None
    out = bytearray(packet)
    nat.remember(source, bytes(out[16:20]))
    out[16:20] = DNS_RESOLVER.packed
    return fix_all_checksums(bytes(out))


def fix_dns_src(packet: bytes, nat: DnsNat) -> Optional[bytes]:
    """Restore the original resolver as the source of an incoming DNS reply."""
    ports = _udp_ports(packet)
    if ports is None:
        return None
    source, dest = ports
    if source != DNS_PORT:
        return None
    original = nat.lookup(dest)
    if original is None:
        return None
    out = bytearray(packet)
    out[12:16] = original.packed
    return fix_all_checksums(bytes(out))