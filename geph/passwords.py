"""Password hashing and login rate limiting for user accounts."""

from __future__ import annotations

import nacl.exceptions
import nacl.pwhash

MAX_INTENSITY = 20.0


class LoginRateLimited(Exception):
    """Too many logins happened recently for this user."""

    def __init__(self, intensity: float) -> None:
        super().__init__(f"too many logins recently (intensity {intensity})")
        self.intensity = intensity


def hash_password(password: str) -> str:
    """Hash a password into a self-describing Argon2id string."""
    hashed = nacl.pwhash.str(
        password.encode("utf-8"),
        opslimit=nacl.pwhash.argon2id.OPSLIMIT_INTERACTIVE,
        memlimit=nacl.pwhash.argon2id.MEMLIMIT_INTERACTIVE,
    )
    return hashed.decode("ascii")


def verify_password(password: str, pwdhash: str) -> bool:
    """Return whether the password matches the stored hash string."""
    try:
        return nacl.pwhash.verify(pwdhash.encode("utf-8"), password.encode("utf-8"))
    except nacl.exceptions.CryptoError:
        return False


def next_login_intensity(existing_intensity: float, days_past: float) -> float:
    """Decay the intensity by half per day elapsed, then count one more login."""
    return existing_intensity * (0.5**days_past) + 1.0


def check_login_intensity(existing_intensity: float, days_past: float) -> float:
    """Return the new login intensity, raising LoginRateLimited past the maximum."""
    new_intensity = next_login_intensity(existing_intensity, days_past)
    if new_intensity > MAX_INTENSITY:
        raise LoginRateLimited(existing_intensity)
    return new_intensity