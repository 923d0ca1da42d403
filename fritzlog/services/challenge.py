# fritzlog/services/challenge.py
"""
Challenge-response computation for the FRITZ!Box session-ID login.

Reference: AVM Technical Note "Session ID" (2021-05-03).

PBKDF2 challenge (FRITZ!OS 7.24+):
    2$<iter1>$<salt1>$<iter2>$<salt2>
    hash1    = PBKDF2-HMAC-SHA256(password, salt1, iter1)
    hash2    = PBKDF2-HMAC-SHA256(hash1,    salt2, iter2)
    response = <salt2 hex>$<hash2 hex>

MD5 challenge (older firmware, no `2$` prefix):
    response = <challenge>-<md5(utf-16le("<challenge>-<password>"))>
"""

import hashlib
from dataclasses import dataclass

from fritzlog.exceptions import ChallengeError

SALT_LENGTH = 16


@dataclass(frozen=True)
class Pbkdf2Params:
    iterations: int
    salt: bytes

    def hash(self, secret: bytes) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", secret, self.salt, self.iterations)


@dataclass(frozen=True)
class Pbkdf2Challenge:
    static: Pbkdf2Params
    dynamic: Pbkdf2Params

    def response(self, password: str) -> str:
        static_hash = self.static.hash(password.encode("utf-8"))
        dynamic_hash = self.dynamic.hash(static_hash)
        return f"{self.dynamic.salt.hex()}${dynamic_hash.hex()}"


@dataclass(frozen=True)
class Md5Challenge:
    challenge: str

    def response(self, password: str) -> str:
        # Box replaces chars above U+00FF with '.' before hashing
        cleaned = "".join(c if ord(c) <= 0xFF else "." for c in password)
        digest = hashlib.md5(f"{self.challenge}-{cleaned}".encode("utf-16-le")).hexdigest()
        return f"{self.challenge}-{digest}"


def _parse_salt(value: str, name: str) -> bytes:
    try:
        salt = bytes.fromhex(value)
    except ValueError as e:
        raise ChallengeError(f"invalid {name}: {e}") from e
    if len(salt) != SALT_LENGTH:
        raise ChallengeError(f"{name} must be {SALT_LENGTH} bytes, got {len(salt)}")
    return salt


def _parse_iterations(value: str, name: str) -> int:
    try:
        iterations = int(value)
    except ValueError as e:
        raise ChallengeError(f"couldn't parse {name}: {e}") from e
    if iterations <= 0:
        raise ChallengeError(f"{name} must be positive")
    return iterations


def parse_challenge(challenge: str):
    """Return a Pbkdf2Challenge or Md5Challenge for the raw <Challenge> text."""
    challenge = (challenge or "").strip()
    if not challenge:
        raise ChallengeError("empty challenge")

    if not challenge.startswith("2$"):
        if "$" in challenge:
            raise ChallengeError("unsupported version")
        return Md5Challenge(challenge)

    parts = challenge.split("$")
    if len(parts) != 5:
        raise ChallengeError("invalid format")
    _, iter1, salt1, iter2, salt2 = parts

    return Pbkdf2Challenge(
        static=Pbkdf2Params(_parse_iterations(iter1, "iter1"), _parse_salt(salt1, "salt1")),
        dynamic=Pbkdf2Params(_parse_iterations(iter2, "iter2"), _parse_salt(salt2, "salt2")),
    )


def make_response(challenge: str, password: str) -> str:
    return parse_challenge(challenge).response(password)
