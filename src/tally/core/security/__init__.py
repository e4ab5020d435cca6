"""Security primitives - password hashing, access tokens, secret encryption.

Re-exports the commonly used names for convenience.
"""

from src.tally.core.security.cipher import SecretCipher, SecretDecryptionError
from src.tally.core.security.headers import SecurityHeadersMiddleware
from src.tally.core.security.passwords import (
    PasswordHasher,
    PasswordVerification,
    get_password_hasher,
)
from src.tally.core.security.tokens import (
    AccessClaims,
    TokenCodec,
    generate_opaque_token,
    get_token_codec,
    hash_token,
)
from src.tally.core.security.validators import is_valid_email, normalize_email, slugify

__all__ = [
    # Cipher
    "SecretCipher",
    "SecretDecryptionError",
    # Passwords
    "PasswordHasher",
    "PasswordVerification",
    "get_password_hasher",
    # Tokens
    "AccessClaims",
    "TokenCodec",
    "generate_opaque_token",
    "get_token_codec",
    "hash_token",
    # Validators
    "is_valid_email",
    "normalize_email",
    "slugify",
    # Middleware
    "SecurityHeadersMiddleware",
]
