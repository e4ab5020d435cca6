"""Property-based tests for validators using hypothesis."""

import re

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.tally.core.security import is_valid_email, normalize_email, slugify
from src.tally.core.security.validators import (
    is_encodable,
    is_storable_email,
    new_password_problem,
    slug_candidate,
    text_field_problem,
)
from src.tally.models.organization import MAX_ORGANIZATION_SLUG_LENGTH

pytestmark = pytest.mark.unit

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


@given(name=st.text(max_size=200))
@settings(max_examples=200)
def test_slugify_always_yields_a_valid_slug(name: str):
    """Whatever the organization name, the slug is non-empty, bounded and URL safe."""
    slug = slugify(name)
    assert 1 <= len(slug) <= MAX_ORGANIZATION_SLUG_LENGTH
    assert SLUG_PATTERN.match(slug)


@given(name=st.from_regex(r"^[a-z0-9]+(-[a-z0-9]+)*$", fullmatch=True).filter(
    lambda s: len(s) <= MAX_ORGANIZATION_SLUG_LENGTH
))
def test_slugify_is_idempotent_on_slugs(name: str):
    assert slugify(name) == name


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Acme Primary School", "acme-primary-school"),
        ("  St. Mary's  ", "st-mary-s"),
        ("Ärger & Co", "rger-co"),
        ("!!!", "organization"),
        ("", "organization"),
    ],
)
def test_slugify_examples(name: str, expected: str):
    assert slugify(name) == expected


def test_slugify_truncates_without_trailing_hyphen():
    slug = slugify("a" * 49 + " school")
    assert slug == "a" * 49


def test_slug_candidate_suffixes():
    assert slug_candidate("acme", 0) == "acme"
    assert slug_candidate("acme", 1) == "acme-1"
    assert slug_candidate("acme", 12) == "acme-12"


@pytest.mark.parametrize(
    "email",
    ["teacher@example.com", "a.b+c@school.org.uk", "X@Y.IO"],
)
def test_valid_emails_accepted(email: str):
    assert is_valid_email(email)


@pytest.mark.parametrize(
    "email",
    [
        "",
        "plainaddress",
        "no-at.example.com",
        "two@@example.com",
        "a@b",
        "with space@example.com",
        "a@.b.c",
        "a@b..com",
        "x" * 250 + "@b.com",
        "bad\ud800@example.com",
    ],
)
def test_invalid_emails_rejected(email: str):
    assert not is_valid_email(email)


@given(local=st.from_regex(r"^[A-Za-z0-9._]{1,20}$", fullmatch=True))
def test_normalize_email_is_idempotent(local: str):
    email = f"  {local}@Example.COM "
    normalized = normalize_email(email)
    assert normalized == normalized.strip().lower()
    assert normalize_email(normalized) == normalized


@given(text=st.text())
def test_generated_text_is_encodable(text: str):
    assert is_encodable(text)


@pytest.mark.parametrize("text", ["\ud800", "ok\udfffok", "\udc80"])
def test_lone_surrogates_are_not_encodable(text: str):
    assert not is_encodable(text)


def test_storable_email_bounds():
    assert is_storable_email("x" * 249 + "@b.com")
    assert not is_storable_email("x" * 250 + "@b.com")
    assert not is_storable_email("bad\ud800@b.com")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Hillside", None),
        ("H" * 100, None),
        ("H" * 101, "Organization name must be at most 100 characters"),
        ("Hill\ud800side", "Organization name contains invalid characters"),
    ],
)
def test_text_field_problem(value: str, expected: str | None):
    assert text_field_problem(value, "Organization name", 100) == expected


@pytest.mark.parametrize(
    ("password", "label", "expected"),
    [
        ("long-enough", "Password", None),
        ("short", "Password", "Password must be at least 8 characters"),
        ("short", "New password", "New password must be at least 8 characters"),
        ("long-\ud800-enough", "Password", "Password contains invalid characters"),
    ],
)
def test_new_password_problem(password: str, label: str, expected: str | None):
    assert new_password_problem(password, 8, label=label) == expected
