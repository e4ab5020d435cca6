"""At-rest encryption for tenant-supplied secrets (third-party API keys).

Stored form is ``base64(nonce):base64(ciphertext || tag)`` using AES-256-GCM.
The key is derived from a server-wide secret with HKDF-SHA256. Values without
the separator predate encryption and are returned unchanged by ``decrypt``.
"""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from src.tally.core.config import get_settings

NONCE_LENGTH = 12
KEY_LENGTH = 32
SEPARATOR = ":"
DEFAULT_SALT = "krm-api-key-encryption-v1"
DEFAULT_INFO = "api-key-encryption"


class SecretDecryptionError(Exception):
    """Stored secret could not be authenticated or parsed."""


def derive_key(secret: str, salt: str = DEFAULT_SALT, info: str = DEFAULT_INFO) -> bytes:
    """Derive a 256-bit AES key from the server secret."""
    if not secret:
        raise ValueError("Encryption secret is required")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt.encode("utf-8"),
        info=info.encode("utf-8"),
    )
    return hkdf.derive(secret.encode("utf-8"))


def encrypt(plaintext: str, secret: str, salt: str = DEFAULT_SALT, info: str = DEFAULT_INFO) -> str:
    """Encrypt ``plaintext`` with a fresh random nonce."""
    if not plaintext:
        raise ValueError("Plaintext is required")
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = AESGCM(derive_key(secret, salt, info)).encrypt(
        nonce, plaintext.encode("utf-8"), None
    )
    return (
        base64.b64encode(nonce).decode("ascii")
        + SEPARATOR
        + base64.b64encode(ciphertext).decode("ascii")
    )


def decrypt(stored: str, secret: str, salt: str = DEFAULT_SALT, info: str = DEFAULT_INFO) -> str:
    """Decrypt a value produced by ``encrypt``.

    Raises:
        SecretDecryptionError: Wrong secret, tampered data, or malformed components.
    """
    if not stored:
        raise ValueError("Stored value is required")
    if SEPARATOR not in stored:
        return stored

    nonce_b64, ciphertext_b64 = stored.split(SEPARATOR, 1)
    try:
        nonce = base64.b64decode(nonce_b64, validate=True)
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SecretDecryptionError("Malformed encrypted value") from e
    if len(nonce) != NONCE_LENGTH or not ciphertext:
        raise SecretDecryptionError("Malformed encrypted value")

    try:
        plaintext = AESGCM(derive_key(secret, salt, info)).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise SecretDecryptionError("Decryption failed: wrong key or tampered data") from e
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SecretDecryptionError("Decrypted value is not valid UTF-8") from e


class SecretCipher:
    """Encrypts and decrypts secrets with one configured server secret."""

    def __init__(self, secret: str, salt: str = DEFAULT_SALT, info: str = DEFAULT_INFO):
        if not secret:
            raise ValueError("Encryption secret is required")
        self._secret = secret
        self._salt = salt
        self._info = info

    @classmethod
    def from_settings(cls) -> "SecretCipher":
        settings = get_settings()
        return cls(
            secret=settings.encryption_secret,
            salt=settings.secret_encryption_salt,
            info=settings.secret_encryption_info,
        )

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self._secret, self._salt, self._info)

    def decrypt(self, stored: str) -> str:
        return decrypt(stored, self._secret, self._salt, self._info)
