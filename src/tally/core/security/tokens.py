"""Access token codec and opaque token helpers."""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from hashlib import sha256
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.tally.core.config import get_settings

ACCESS_TOKEN_TYPE = "access"
OPAQUE_TOKEN_BYTES = 32


def hash_token(token: str) -> str:
    """Hash a token using SHA256 for secure storage."""
    return sha256(token.encode("utf-8", "surrogatepass")).hexdigest()


def generate_opaque_token() -> str:
    """Generate a 256-bit URL-safe random token."""
    return secrets.token_urlsafe(OPAQUE_TOKEN_BYTES)


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by an access token."""

    user_id: UUID
    email: str
    name: str | None
    organization_id: UUID
    organization_slug: str
    role: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "sub": str(self.user_id),
            "email": self.email,
            "name": self.name,
            "org": str(self.organization_id),
            "orgSlug": self.organization_slug,
            "role": self.role,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AccessClaims":
        return cls(
            user_id=UUID(payload["sub"]),
            email=payload["email"],
            name=payload.get("name"),
            organization_id=UUID(payload["org"]),
            organization_slug=payload["orgSlug"],
            role=payload["role"],
        )


class TokenCodec:
    """Creates and verifies HS256-signed access tokens.

    Access tokens are never looked up server side: they are trusted until
    ``exp``, which is why their lifetime is kept to minutes.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", default_ttl: timedelta | None = None):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._default_ttl = default_ttl or timedelta(minutes=15)

    def issue(self, claims: AccessClaims, ttl: timedelta | None = None) -> str:
        issued_at = datetime.now(UTC)
        to_encode = {
            **claims.to_payload(),
            "type": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + (ttl or self._default_ttl),
        }
        return jwt.encode(  # type: ignore[no-any-return]
            to_encode,
            self._secret_key,
            algorithm=self._algorithm,
        )

    def verify(self, token: str) -> AccessClaims | None:
        """Decode and validate an access token. Returns None on any error."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except JWTError:
            return None

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            return None
        try:
            return AccessClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError):
            return None


@lru_cache
def get_token_codec() -> TokenCodec:
    """Create token codec with settings from config."""
    settings = get_settings()
    return TokenCodec(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        default_ttl=timedelta(minutes=settings.access_token_expire_minutes),
    )
