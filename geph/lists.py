"""Port whitelist and blacklist applied to exit traffic."""

from __future__ import annotations

_BASE_WHITE_PORTS = (
    20, 21, 22, 23, 43, 53, 79, 80, 81, 88, 110, 143, 194, 220, 389, 443, 464, 465, 531,
    543, 544, 554, 563, 587, 636, 706, 749, 853, 873, 902, 903, 904, 981, 989, 990, 991,
    992, 993, 994, 995, 1194, 1220, 1293, 1500, 1533, 1677, 1723, 1755, 1863, 2082, 2083,
    2086, 2087, 2095, 2096, 2102, 2104, 3128, 3389, 3690, 4321, 4643, 5050, 5190, 5222,
    5223, 5228, 5900, 6660, 6661, 6662, 6663, 6664, 6665, 6666, 6667, 6668, 6669, 6679,
    6697, 8000, 8008, 8074, 8080, 8082, 8087, 8088, 8232, 8233, 8332, 8333, 8443, 8888,
    9418, 9999, 10000, 11371, 19294, 19638, 19999, 50002, 64738,
)

WHITE_PORTS: frozenset[int] = frozenset(
    (
        *_BASE_WHITE_PORTS,
        *range(27000, 27101),  # steam
        3748, 4379, 4380,
        *range(60000, 61001),  # mosh
    )
)

BLACK_PORTS: frozenset[int] = frozenset({25})


def port_allowed(port: int, use_whitelist: bool) -> bool:
    """Return whether traffic to the given destination port may pass."""
    if port in BLACK_PORTS:
        return False
    return not use_whitelist or port in WHITE_PORTS