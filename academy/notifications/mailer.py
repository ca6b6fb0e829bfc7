"""
Outbound email through SendGrid.
Failures are logged and swallowed so the calling request still succeeds.
"""

import logging

from fastapi.concurrency import run_in_threadpool
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to Academy"
WELCOME_HTML = (
    "<h1>Welcome to Academy</h1>"
    "<p>Dear {name},</p>"
    "<p>Thank you for joining Academy. We're excited to have you on board!</p>"
)


class Mailer:
    def __init__(self, settings):
        self.sender = settings.mail_from
        self._client = SendGridAPIClient(settings.sendgrid_api_key) if settings.sendgrid_api_key else None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def send(self, to: str, subject: str, text: str, html: str = None) -> bool:
        if not self.enabled:
            logger.debug("Mail disabled, skipping '%s' to %s", subject, to)
            return False

        message = Mail(
            from_email=self.sender,
            to_emails=to,
            subject=subject,
            plain_text_content=text,
            html_content=html or text,
        )
        try:
            await run_in_threadpool(self._client.send, message)
            return True
        except Exception as e:
            logger.warning("Mail to %s failed: %s", to, e)
            return False

    async def send_welcome(self, to: str, full_name: str) -> bool:
        return await self.send(
            to,
            WELCOME_SUBJECT,
            f"Welcome to Academy, {full_name}!",
            WELCOME_HTML.format(name=full_name),
        )
