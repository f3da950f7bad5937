"""Lookup of mainland-China hosts and IPv4 addresses."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from typing import Union

IPv4Like = Union[str, int, ipaddress.IPv4Address]


class ChinaLookup:
    """Answers whether a domain or IPv4 address belongs to mainland China."""

    def __init__(
        self,
        domains: Iterable[str],
        networks: Iterable[Union[str, ipaddress.IPv4Network]],
    ) -> None:
        self._domains = frozenset(domains)
        # prefix length -> set of masked network addresses
        self._prefixes: dict[int, set[int]] = {}
        for net in networks:
            network = ipaddress.IPv4Network(net, strict=False)
            self._prefixes.setdefault(network.prefixlen, set()).add(
                int(network.network_address)
            )
        self._masks = {
            plen: (0xFFFFFFFF << (32 - plen)) & 0xFFFFFFFF for plen in self._prefixes
        }

    @classmethod
    def from_text(cls, domains_text: str, ips_text: str) -> "ChinaLookup":
        """Build a lookup from a newline-separated domain list and CIDR list."""
        domains = (line for line in domains_text.split("\n") if len(line) > 1)
        networks = []
        for entry in ips_text.split():
            address, plen = entry.split("/")
            networks.append(
                ipaddress.IPv4Network(
                    (ipaddress.IPv4Address(address), int(plen)), strict=False
                )
            )
        return cls(domains, networks)

    def is_chinese_ip(self, ip: IPv4Like) -> bool:
        """Return True if the address falls inside any known Chinese network."""
        value = int(ipaddress.IPv4Address(ip))
        return any(
            value & self._masks[plen] in masked
            for plen, masked in self._prefixes.items()
        )

    def is_chinese_host(self, host: str) -> bool:
        """Return True if the host or any parent domain is a Chinese domain."""
        labels = host.split(".")
        return any(
            ".".join(labels[start:]) in self._domains for start in range(len(labels))
        )