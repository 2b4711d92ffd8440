"""Transactional email delivery through the Brevo HTTP API."""

import logging
from typing import Any, Dict, Optional

import httpx

from config import (
    BREVO_API_KEY,
    BREVO_API_URL,
    BREVO_SENDER_EMAIL,
    BREVO_SENDER_NAME,
    MAIL_TIMEOUT_SECONDS,
    OTP_TTL_MINUTES,
    PASSWORD_RESET_TTL_MINUTES,
)
from core.exceptions import UpstreamFailureError

logger = logging.getLogger(__name__)

_OTP_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Verify Your Email</h2>
  <p>Your One-Time Password (OTP) for Aithor is:</p>
  <div style="background-color: #f4f4f4; padding: 20px; text-align: center;
              font-size: 24px; font-weight: bold; letter-spacing: 5px;">{otp}</div>
  <p>This OTP will expire in {ttl} minutes.</p>
  <p>If you didn't request this, please ignore this email.</p>
</div>
"""

_RESET_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Reset Your Password</h2>
  <p>Hello {name},</p>
  <p>We received a request to reset the password of your Aithor account.</p>
  <p><a href="{link}">Reset password</a></p>
  <p>This link will expire in {ttl} minutes.</p>
  <p>If you didn't request this, please ignore this email.</p>
</div>
"""


class MailService:
    """Sends OTP and password reset emails."""

    def __init__(
        self,
        api_key: Optional[str] = BREVO_API_KEY,
        sender_email: str = BREVO_SENDER_EMAIL,
        sender_name: str = BREVO_SENDER_NAME,
        timeout: float = MAIL_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout

    def _send(self, to_email: str, to_name: str, subject: str, html: str) -> Dict[str, Any]:
        """Post one message to Brevo.

        Raises:
            UpstreamFailureError: If the API key is missing or Brevo rejects
                or does not answer the request.
        """
        if not self.api_key:
            raise UpstreamFailureError("Email delivery is not configured")

        payload = {
            "sender": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": to_email, "name": to_name or to_email}],
            "subject": subject,
            "htmlContent": html,
        }
        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(BREVO_API_URL, headers=headers, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Brevo rejected email to %s: %s %s",
                to_email,
                e.response.status_code,
                e.response.text,
            )
            raise UpstreamFailureError("Failed to send email. Please try again.") from e
        except httpx.HTTPError as e:
            logger.error("Brevo request failed for %s: %s", to_email, e)
            raise UpstreamFailureError("Failed to send email. Please try again.") from e

        logger.info("Sent '%s' email to %s", subject, to_email)
        if not response.text:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def send_otp_email(self, email: str, otp: str) -> None:
        self._send(
            email,
            email,
            "Your OTP for Aithor Verification",
            _OTP_HTML.format(otp=otp, ttl=OTP_TTL_MINUTES),
        )

    def send_password_reset_email(self, email: str, name: Optional[str], link: str) -> None:
        self._send(
            email,
            name or email,
            "Reset your Aithor password",
            _RESET_HTML.format(
                name=name or email, link=link, ttl=PASSWORD_RESET_TTL_MINUTES
            ),
        )
