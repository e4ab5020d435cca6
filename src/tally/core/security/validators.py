"""Input validators for credentials and organization slugs."""

import re
from typing import Final

from email_validator import EmailNotValidError, validate_email

from src.tally.models.organization import MAX_ORGANIZATION_SLUG_LENGTH
from src.tally.models.user import MAX_EMAIL_LENGTH

FALLBACK_SLUG: Final[str] = "organization"

_NON_SLUG_CHARS: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")


def is_valid_email(email: str) -> bool:
    """Syntax check through email-validator. No DNS lookups."""
    if not is_storable_email(email):
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_encodable(text: str) -> bool:
    """False for strings holding lone surrogates, which no column can store."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def is_storable_email(email: str) -> bool:
    """Whether ``email`` fits the users and login_attempts email columns."""
    return len(email) <= MAX_EMAIL_LENGTH and is_encodable(email)


def text_field_problem(value: str, label: str, max_length: int) -> str | None:
    if len(value) > max_length:
        return f"{label} must be at most {max_length} characters"
    if not is_encodable(value):
        return f"{label} contains invalid characters"
    return None


def new_password_problem(password: str, min_length: int, label: str = "Password") -> str | None:
    """Why ``password`` cannot become a stored password, or None when it can."""
    if len(password) < min_length:
        return f"{label} must be at least {min_length} characters"
    if not is_encodable(password):
        return f"{label} contains invalid characters"
    return None


def normalize_email(email: str) -> str:
    """Lowercased, trimmed form used for lockout accounting."""
    return email.strip().lower()


def slugify(name: str) -> str:
    """Convert an organization name to its base slug.

    Examples:
        >>> slugify("Acme Primary School")
        'acme-primary-school'
        >>> slugify("  St. Mary's  ")
        'st-mary-s'
        >>> slugify("!!!")
        'organization'
    """
    slug = _NON_SLUG_CHARS.sub("-", name.lower()).strip("-")
    slug = slug[:MAX_ORGANIZATION_SLUG_LENGTH].strip("-")
    return slug or FALLBACK_SLUG


def slug_candidate(base: str, attempt: int) -> str:
    """Slug to try on the given collision attempt (0 is the bare base)."""
    if attempt == 0:
        return base
    return f"{base}-{attempt}"
