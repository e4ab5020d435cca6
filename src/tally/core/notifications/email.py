"""Outgoing email through the Resend API.

Delivery is best effort: every function here returns a bool and logs the
failure instead of raising, so callers can keep their responses uniform.
"""

import html
from dataclasses import dataclass

import resend

from src.tally.core.config import get_settings
from src.tally.core.logging import get_logger

logger = get_logger(__name__)

_PAGE_STYLE = "font-family: sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;"
_BUTTON_STYLE = (
    "background-color: #2563eb; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block;"
)


@dataclass(frozen=True)
class PasswordResetEmail:
    recipient: str
    reset_url: str
    user_name: str | None
    expires_minutes: int
    app_name: str

    @property
    def subject(self) -> str:
        return f"Reset your {self.app_name} password"

    @property
    def greeting(self) -> str:
        return f"Hi {self.user_name or 'there'},"

    def text(self) -> str:
        return (
            f"{self.greeting}\n\n"
            "We received a request to reset your password. Open this link to choose a new one:\n"
            f"{self.reset_url}\n\n"
            f"The link expires in {self.expires_minutes} minutes. "
            "If you didn't ask for a reset, ignore this email.\n"
        )

    def html(self) -> str:
        url = html.escape(self.reset_url, quote=True)
        return (
            f'<div style="{_PAGE_STYLE}">'
            f"<h1>Reset your password</h1>"
            f"<p>{html.escape(self.greeting)}</p>"
            "<p>We received a request to reset your password. Click below to choose a new one:</p>"
            f'<p><a href="{url}" style="{_BUTTON_STYLE}">Reset Password</a></p>'
            f"<p>The link expires in {self.expires_minutes} minutes. "
            "If you didn't ask for a reset, ignore this email.</p>"
            "</div>"
        )


def send_password_reset_email(to: str, token: str, user_name: str | None, expires_minutes: int) -> bool:
    """Email a reset link carrying the raw token.

    Blocking; callers on the event loop run it in a worker thread. Returns True
    when Resend accepted the message or when no API key is configured (the
    message is then only logged as skipped).
    """
    settings = get_settings()
    message = PasswordResetEmail(
        recipient=to,
        reset_url=f"{settings.app_url}/reset-password?token={token}",
        user_name=user_name,
        expires_minutes=expires_minutes,
        app_name=settings.app_name,
    )

    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set, password reset email skipped")
        return True

    resend.api_key = settings.resend_api_key
    try:
        resend.Emails.send(
            {
                "from": settings.email_from,
                "to": [message.recipient],
                "subject": message.subject,
                "html": message.html(),
                "text": message.text(),
            }
        )
    except Exception as e:
        logger.error("Failed to send password reset email", error=str(e))
        return False
    logger.info("Password reset email sent")
    return True
