"""Outgoing notifications."""

from src.tally.core.notifications.email import PasswordResetEmail, send_password_reset_email

__all__ = [
    "PasswordResetEmail",
    "send_password_reset_email",
]
