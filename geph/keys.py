"""Parsing of command-line key and path options."""

from __future__ import annotations

import binascii
import os
import sys
from pathlib import Path

KEY_LENGTH = 32


def _config_dir() -> Path:
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".config"


def credential_cache_path(src: str) -> Path:
    """Resolve the credential cache option; "auto" picks a per-platform path."""
    if src == "auto":
        return _config_dir() / "geph4-credentials"
    return Path(src)


def parse_key_hex(src: str) -> bytes:
    """Decode a 32-byte public key given in hexadecimal."""
    try:
        raw = binascii.unhexlify(src)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"invalid hex key: {src!r}") from err
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"key must be {KEY_LENGTH} bytes, got {len(raw)}")
    return raw