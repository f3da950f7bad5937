"""Building blocks for a proxy network: routing lists, packet rewriting, address assignment, password, captcha and statistics helpers."""

__version__ = "0.1.0"