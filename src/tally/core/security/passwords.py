"""Password hashing with transparent algorithm upgrade.

New hashes are Argon2id PHC strings (``$argon2id$v=19$m=...,t=...,p=...$salt$digest``),
which carry their own parameters. Hashes written by the previous implementation
use ``base64(salt):base64(pbkdf2_sha256)`` with a fixed iteration count; they
still verify, but are always reported as needing a rehash so the caller can
upgrade them on the next successful login.
"""

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from functools import cached_property, lru_cache

import argon2

from src.tally.core.config import get_settings

LEGACY_PBKDF2_ITERATIONS = 100_000
LEGACY_PBKDF2_DIGEST_LENGTH = 32
_LEGACY_SEPARATOR = ":"


@dataclass(frozen=True)
class PasswordVerification:
    """Outcome of verifying a password against a stored hash."""

    valid: bool
    needs_rehash: bool = False


class PasswordHasher:
    """Derives and verifies salted password hashes.

    Examples
    --------
    >>> hasher = PasswordHasher(time_cost=1, memory_cost=1024)
    >>> stored = hasher.hash("correct horse")
    >>> hasher.verify("correct horse", stored).valid
    True
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1):
        self._argon2 = argon2.PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, plaintext: str) -> str:
        """Hash password using Argon2id with a fresh random salt."""
        return self._argon2.hash(plaintext)

    def verify(self, plaintext: str, stored: str) -> PasswordVerification:
        """Verify password against hash. Returns valid=False on any error."""
        if not stored:
            return PasswordVerification(valid=False)

        try:
            if stored.startswith("$argon2"):
                return self._verify_argon2(plaintext, stored)

            if stored.count(_LEGACY_SEPARATOR) == 1:
                valid = _verify_legacy_pbkdf2(plaintext, stored)
                return PasswordVerification(valid=valid, needs_rehash=valid)
        except UnicodeEncodeError:
            # Lone surrogates cannot match any stored hash.
            return PasswordVerification(valid=False)

        return PasswordVerification(valid=False)

    def _verify_argon2(self, plaintext: str, stored: str) -> PasswordVerification:
        try:
            self._argon2.verify(stored, plaintext)
        except argon2.exceptions.VerificationError:
            return PasswordVerification(valid=False)
        except argon2.exceptions.InvalidHashError:
            return PasswordVerification(valid=False)
        return PasswordVerification(
            valid=True,
            needs_rehash=self._argon2.check_needs_rehash(stored),
        )

    @cached_property
    def dummy_hash(self) -> str:
        """A valid hash of a random value, for constant-shape verification of unknown users."""
        return self.hash(base64.b64encode(hashlib.sha256(b"tally-dummy").digest()).decode())


def _verify_legacy_pbkdf2(plaintext: str, stored: str) -> bool:
    salt_b64, digest_b64 = stored.split(_LEGACY_SEPARATOR)
    if not salt_b64 or not digest_b64:
        return False
    try:
        salt = base64.b64decode(salt_b64, validate=True)
        expected = base64.b64decode(digest_b64, validate=True)
    except (binascii.Error, ValueError):
        return False
    if len(expected) != LEGACY_PBKDF2_DIGEST_LENGTH:
        return False

    computed = hashlib.pbkdf2_hmac(
        "sha256",
        plaintext.encode("utf-8"),
        salt,
        LEGACY_PBKDF2_ITERATIONS,
        dklen=LEGACY_PBKDF2_DIGEST_LENGTH,
    )
    return hmac.compare_digest(computed, expected)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Create password hasher with settings from config."""
    settings = get_settings()
    return PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
