import logging
import html

import httpx

from examprep.core.config import settings
from examprep.core.exceptions import EmailDeliveryError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Mailer:
    """Sends mail through the transactional email HTTP API."""

    def __init__(self, api_url: str = None, api_key: str = None, sender: str = None, timeout: float = 10.0):
        self.api_url = api_url if api_url is not None else settings.EMAIL_API_URL
        self.api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout

    def send(self, to: str, subject: str, text_body: str, html_body: str) -> str:
        """
        Deliver one message.

        Returns:
            the provider message id

        Raises:
            EmailDeliveryError if the provider did not accept the message
        """
        if not self.api_url:
            raise EmailDeliveryError("Email service is not configured")

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text_body,
            "html": html_body,
        }

        try:
            response = httpx.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("Email API error: %s", str(e))
            raise EmailDeliveryError() from e

        if not 200 <= response.status_code < 300:
            logger.warning("Email API failed [%s]: %s", response.status_code, response.text)
            raise EmailDeliveryError()

        # any 2xx is delivered, even with an empty or non-JSON body
        try:
            message_id = response.json().get("id", "")
        except (ValueError, AttributeError):
            message_id = ""
        logger.info("Email sent to %s (id=%s)", to, message_id)
        return message_id


def send_otp_email(mailer: Mailer, email: str, otp: str, first_name: str, expires_in_seconds: int) -> str:
    minutes = max(1, expires_in_seconds // 60)
    subject = "JEE-NEET App - Email Verification Code"
    text_body = (
        f"Hello {first_name},\n\n"
        f"Your verification code is: {otp}\n\n"
        f"This code will expire in {minutes} minutes.\n"
        "If you didn't request this code, please ignore this email.\n\n"
        "JEE-NEET Preparation Team"
    )
    safe_name = html.escape(first_name or "")
    html_body = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #2563eb;">JEE-NEET Preparation App</h2>
        <p>Hello <strong>{safe_name}</strong>,</p>
        <p>Your verification code is:</p>
        <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; text-align: center;">
          <h1 style="color: #2563eb; font-size: 32px; letter-spacing: 4px; margin: 0;">{otp}</h1>
        </div>
        <p><strong>This code will expire in {minutes} minutes.</strong></p>
        <p>If you didn't request this code, please ignore this email.</p>
      </div>
    """
    return mailer.send(email, subject, text_body, html_body)


def get_mailer() -> Mailer:
    """Dependency to get the mailer"""
    return Mailer()
