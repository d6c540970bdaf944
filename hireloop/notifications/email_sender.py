"""Email transport — Resend (HTTP API) or SMTP, with retries.

Senders never raise: every outcome is reported as a SendResult so callers
can count failures without wrapping each call.
"""

import logging
import smtplib
import time
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hireloop.config import EmailConfig
from hireloop.notifications.rate_limit import EmailRateLimiter, event_type

logger = logging.getLogger("hireloop.notifications")


class EmailCategory(str, Enum):
    """Downstream unsubscribe handling keys off this; it is passed through untouched."""

    CRITICAL_TRANSACTIONAL = "critical_transactional"
    IMPORTANT_TRANSACTIONAL = "important_transactional"
    USER_NOTIFICATION = "user_notification"
    SYSTEM = "system"


@dataclass
class SendResult:
    success: bool
    error: str | None = None
    message_id: str | None = None


class _PermanentSendError(Exception):
    pass


class BaseEmailSender:
    def __init__(
        self,
        config: EmailConfig,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        rate_limiter: EmailRateLimiter | None = None,
    ):
        self.config = config
        self.max_attempts = max(1, config.max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.rate_limiter = rate_limiter or EmailRateLimiter()

    @property
    def from_address(self) -> str:
        if self.config.from_name:
            return f"{self.config.from_name} <{self.config.from_email}>"
        return self.config.from_email

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        category: EmailCategory = EmailCategory.USER_NOTIFICATION,
        tags: list[dict] | None = None,
    ) -> SendResult:
        """Send one email, retrying transient failures with exponential backoff."""
        if not to:
            return SendResult(success=False, error="No recipient address")

        category = EmailCategory(category)
        tags = tags or []
        event = event_type(tags)
        self.rate_limiter.check(to, category, event)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_not_exception_type(_PermanentSendError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=time.sleep,
            reraise=True,
        )
        try:
            message_id = retrying(self._deliver, to, subject, html, text, category, tags)
        except _PermanentSendError as e:
            logger.error("Email to %s failed permanently: %s", to, e)
            return SendResult(success=False, error=str(e))
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error("Email to %s failed after %d attempts: %s", to, self.max_attempts, error)
            return SendResult(success=False, error=error)

        self.rate_limiter.record(to, category, event)
        logger.info("Email sent to %s (%s): %s", to, category.value, subject)
        return SendResult(success=True, message_id=message_id)

    def _deliver(self, to, subject, html, text, category, tags) -> str | None:
        raise NotImplementedError


class ResendEmailSender(BaseEmailSender):
    """Send via the Resend HTTP API (works on hosts that block outbound SMTP)."""

    def _deliver(self, to, subject, html, text, category, tags) -> str | None:
        import resend

        if not self.config.resend_api_key:
            raise _PermanentSendError("Resend API key not configured")
        resend.api_key = self.config.resend_api_key

        params = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
            "tags": [{"name": "category", "value": category.value}] + list(tags),
        }
        response = resend.Emails.send(params)
        if isinstance(response, dict):
            return response.get("id")
        return getattr(response, "id", None)


class SmtpEmailSender(BaseEmailSender):
    """Plain SMTP with STARTTLS."""

    def _deliver(self, to, subject, html, text, category, tags) -> str | None:
        if not self.config.smtp_username or not self.config.smtp_password:
            raise _PermanentSendError("SMTP credentials not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg["X-Email-Category"] = category.value
        for tag in tags:
            msg[f"X-Tag-{tag['name']}"] = str(tag["value"])
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.config.smtp_server, self.config.smtp_port, timeout=30) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(self.config.smtp_username, self.config.smtp_password)
                server.sendmail(self.config.from_email, to, msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            raise _PermanentSendError(f"SMTP authentication failed: {e}") from e
        return None


def build_email_sender(config: EmailConfig) -> BaseEmailSender:
    if config.provider == "smtp":
        return SmtpEmailSender(config)
    return ResendEmailSender(config)
