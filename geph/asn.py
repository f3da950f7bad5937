"""IPv4 to autonomous-system-number lookup."""

from __future__ import annotations

import bisect
import gzip
import ipaddress
import logging
from collections.abc import Iterable
from typing import Union

import requests

log = logging.getLogger(__name__)

GOOGLE_ASN = 15169
IP2ASN_URL = "https://iptoasn.com/data/ip2asn-v4.tsv.gz"

_MAX_IPV4 = 0xFFFFFFFF


def next_ip(ip: Union[str, int, ipaddress.IPv4Address]) -> ipaddress.IPv4Address:
    """Return the following IPv4 address, saturating at 255.255.255.255."""
    value = int(ipaddress.IPv4Address(ip))
    return ipaddress.IPv4Address(min(value + 1, _MAX_IPV4))


class AsnTable:
    """A map from half-open IPv4 ranges to AS numbers; later ranges win."""

    def __init__(self, ranges: Iterable[tuple[object, object, int]] = ()) -> None:
        self._starts: list[int] = []
        self._ends: list[int] = []
        self._values: list[int] = []
        for start, end, asn in ranges:
            self._insert(
                int(ipaddress.IPv4Address(start)), int(ipaddress.IPv4Address(end)), asn
            )

    def _insert(self, start: int, end: int, value: int) -> None:
        if end <= start:
            return
        starts, ends, values = self._starts, self._ends, self._values
        first = bisect.bisect_right(starts, start) - 1
        if first < 0 or ends[first] <= start:
            first += 1
        last = first
        while last < len(starts) and starts[last] < end:
            last += 1
        new_starts, new_ends, new_values = [], [], []
        if first < last and starts[first] < start:
            new_starts.append(starts[first])
            new_ends.append(start)
            new_values.append(values[first])
        new_starts.append(start)
        new_ends.append(end)
        new_values.append(value)
        if first < last and ends[last - 1] > end:
            new_starts.append(end)
            new_ends.append(ends[last - 1])
            new_values.append(values[last - 1])
        starts[first:last] = new_starts
        ends[first:last] = new_ends
        values[first:last] = new_values

    @classmethod
    def parse(cls, text: str) -> "AsnTable":
        """Parse an ip2asn TSV dump: start, inclusive end, ASN, ..."""
        table = cls()
        for line in text.split("\n"):
            fields = line.split()
            if len(fields) < 3:
                log.warning("skipping line in ASN database: %s", line)
                continue
            start = ipaddress.IPv4Address(fields[0])
            end = next_ip(fields[1])
            asn = int(fields[2])
            if end > start:
                table._insert(int(start), int(end), asn)
        return table

    @classmethod
    def fetch(cls, url: str = IP2ASN_URL) -> "AsnTable":
        """Download and parse a gzip-compressed ip2asn database."""
        resp = requests.get(url, timeout=60)
        if resp.status_code != 200:
            raise RuntimeError(f"ASN database download failed ({resp.status_code})")
        return cls.parse(gzip.decompress(resp.content).decode("utf-8"))

    def get_asn(self, addr: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]) -> int:
        """Return the ASN of the address, or zero if unknown or not IPv4."""
        address = ipaddress.ip_address(addr)
        if address.version != 4:
            return 0
        value = int(address)
        idx = bisect.bisect_right(self._starts, value) - 1
        if idx >= 0 and value < self._ends[idx]:
            return self._values[idx]
        return 0