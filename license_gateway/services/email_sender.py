"""Outbound email through the Resend HTTP API.

When no Resend API key is configured the message is written to the log
instead and reported as delivered, so local and preview deployments keep
working without an email provider.
"""

import re
import uuid
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from license_gateway.logging_config import get_logger, mask_email
from license_gateway.models.settings import NotificationConfig

logger = get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects a message or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmailDelivery(BaseModel):
    """Result of one send."""

    model_config = ConfigDict(frozen=True)

    delivered: bool
    message: str
    email_id: Optional[str] = None
    logged_only: bool = False


def html_to_text(html: str) -> str:
    return _TAG_RE.sub("", html).strip()


class ResendEmailSender:
    """Sends email via Resend using a synchronous httpx client."""

    def __init__(self, config: NotificationConfig, client: Optional[httpx.Client] = None):
        self._config = config
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._config.resend_api_key)

    def send(
        self,
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
    ) -> EmailDelivery:
        """Send one email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            text: Plain-text body (derived from ``html`` when omitted)

        Returns:
            EmailDelivery with the provider's email id

        Raises:
            EmailDeliveryError: If Resend answers with an error or is unreachable
        """
        body_html = html or text or ""
        body_text = text or html_to_text(html or "")

        if not self.configured:
            log_id = f"logged-{uuid.uuid4().hex[:12]}"
            logger.warning(
                "email_logged_not_sent",
                message="RESEND_API_KEY not configured",
                to=mask_email(to),
                subject=subject,
                body=body_text,
                email_id=log_id,
            )
            return EmailDelivery(
                delivered=True,
                message="Email logged (RESEND_API_KEY not configured)",
                email_id=log_id,
                logged_only=True,
            )

        payload = {
            "from": self._config.sender,
            "to": [to],
            "subject": subject,
            "html": body_html,
            "text": body_text,
        }
        headers = {"Authorization": f"Bearer {self._config.resend_api_key}"}

        try:
            if self._client is not None:
                response = self._client.post(self._config.resend_api_url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self._config.timeout_seconds) as client:
                    response = client.post(self._config.resend_api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("email_send_failed", to=mask_email(to), error=str(e), error_type=type(e).__name__)
            raise EmailDeliveryError(f"Resend request failed: {e}") from e

        if response.is_error:
            logger.error(
                "email_send_rejected",
                to=mask_email(to),
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise EmailDeliveryError(
                f"Resend API error: {response.status_code}", status_code=response.status_code
            )

        email_id = response.json().get("id")
        logger.info("email_sent", to=mask_email(to), subject=subject, email_id=email_id)
        return EmailDelivery(delivered=True, message="Email sent successfully", email_id=email_id)
