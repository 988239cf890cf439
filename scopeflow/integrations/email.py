"""
Outbound email through an HTTP email API (Resend-compatible).

Sending is best-effort: every failure is logged and reported as ``False``.
"""

import logging
from typing import Optional

import aiohttp
from email_validator import EmailNotValidError, validate_email

from config import settings

logger = logging.getLogger(__name__)


class EmailSender:
    """Posts messages to the configured email API."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        environment: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ):
        self.api_url = api_url or settings.email_api_url
        self.api_key = settings.email_api_key if api_key is None else api_key
        self.sender = sender or settings.email_from
        self.environment = environment or settings.environment
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @staticmethod
    def is_valid_address(address: Optional[str]) -> bool:
        if not address:
            return False
        try:
            validate_email(address, check_deliverability=False)
            return True
        except EmailNotValidError:
            return False

    async def send(self, to: str, subject: str, html: str, text: str) -> bool:
        """
        Send one email.

        Returns:
            True if the provider accepted it (or it was logged in development)
        """
        if not self.is_valid_address(to):
            logger.error(f"Invalid email address: {to!r}")
            return False

        if self.environment == "development":
            logger.info(f"[email] To: {to} | Subject: {subject} (content hidden)")
            return True

        if not self.api_key:
            logger.warning("Email sending not configured (EMAIL_API_KEY missing)")
            return False

        payload = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.api_url, json=payload, headers=headers) as response:
                    if 200 <= response.status < 300:
                        logger.info(f"Sent email '{subject}' to {to}")
                        return True
                    error = await response.text()
                    logger.error(f"Email API error: {response.status} - {error[:200]}")
                    return False
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False


# Singleton
_email_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    """Get the email sender singleton."""
    global _email_sender
    if _email_sender is None:
        _email_sender = EmailSender()
    return _email_sender
