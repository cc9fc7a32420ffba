import asyncio
import html
import logging
import smtplib
import ssl
import time
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Set

from tasq.core.config import settings
from tasq.core.exceptions import EmailDeliveryError
from tasq.schemas.notification import EmailResult

logger = logging.getLogger(__name__)

# Port on which SMTP speaks TLS from the first byte (no STARTTLS)
_SMTPS_PORT = 465

_ALERT_TEMPLATE = """\
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e2e8f0; border-radius: 20px;">
    <h2 style="color: #0f172a; font-weight: 800; font-size: 24px;">Neural Sync Alert</h2>
    <p style="color: #64748b; font-size: 14px; line-height: 1.5;">Your workspace has detected an urgent operational requirement.</p>
    <div style="background-color: #f8fafc; padding: 20px; border-radius: 12px; margin: 20px 0; border-left: 4px solid #6366f1;">
        <p style="margin: 0; font-size: 12px; color: #94a3b8; font-weight: 700; text-transform: uppercase;">Target Unit</p>
        <p style="margin: 5px 0; font-size: 18px; color: #1e293b; font-weight: 800;">{task_title}</p>
    </div>
    <p style="color: #334155; font-size: 15px;">{body}</p>
    <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #f1f5f9;">
        <p style="color: #94a3b8; font-size: 11px; text-transform: uppercase; font-weight: 700;">TASQ.ONE NEURAL COMMAND CENTER</p>
    </div>
</div>
"""


class EmailDispatcher:
    """Outbound deadline email over SMTP.

    ``send_email`` makes exactly one delivery attempt and raises
    ``EmailDeliveryError`` on failure.  ``dispatch`` is the
    fire-and-forget variant used by the deadline scanner: it schedules
    the send on the running loop and only logs the outcome.

    When no SMTP credentials are configured, sending is skipped and
    reported as a success with a ``mock-id-<ms>`` message id.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> None:
        self._host = host if host is not None else settings.SMTP_HOST
        self._port = port if port is not None else settings.SMTP_PORT
        self._username = username if username is not None else settings.SMTP_USER
        self._password = password if password is not None else settings.SMTP_PASS
        self._sender = sender if sender is not None else settings.SMTP_FROM
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.SMTP_TIMEOUT_SECONDS
        )
        # Strong references so in-flight sends are not garbage-collected
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_configured(self) -> bool:
        return bool(self._username and self._password)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @staticmethod
    def render_html(body: str, task_title: Optional[str] = None) -> str:
        return _ALERT_TEMPLATE.format(
            task_title=html.escape(task_title or "Task Update"),
            body=html.escape(body),
        )

    def _build_message(
        self, to: str, subject: str, body: str, task_title: Optional[str]
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to
        msg["Message-ID"] = make_msgid(domain="tasq.one")
        msg.set_content(body)
        msg.add_alternative(self.render_html(body, task_title), subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self._port == _SMTPS_PORT:
            with smtplib.SMTP_SSL(
                self._host, self._port, context=context, timeout=self._timeout
            ) as smtp:
                smtp.login(self._username, self._password)
                smtp.send_message(msg)
        else:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                smtp.ehlo()
                smtp.starttls(context=context)
                smtp.login(self._username, self._password)
                smtp.send_message(msg)

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        task_title: Optional[str] = None,
    ) -> EmailResult:
        """Send one email. Raises ``EmailDeliveryError`` on SMTP failure."""
        if not self.is_configured:
            logger.warning("Email service not configured - skipping email to %s", to)
            return EmailResult(
                message_id=f"mock-id-{int(time.time() * 1000)}",
                message="Notification processed (email service not configured)",
            )

        msg = self._build_message(to, subject, body, task_title)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Failed to send email to {to}: {exc}") from exc

        logger.info("Email sent to %s message_id=%s", to, msg["Message-ID"])
        return EmailResult(message_id=msg["Message-ID"])

    def dispatch(
        self,
        to: str,
        subject: str,
        body: str,
        task_title: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule ``send_email`` without awaiting it.

        Must be called from inside a running event loop.  The returned
        task never raises; failures are logged.
        """
        task = asyncio.create_task(self._send_logged(to, subject, body, task_title))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _send_logged(
        self, to: str, subject: str, body: str, task_title: Optional[str]
    ) -> Optional[EmailResult]:
        try:
            return await self.send_email(to, subject, body, task_title)
        except Exception:
            logger.error("Deadline email to %s failed", to, exc_info=True)
            return None

    async def drain(self) -> None:
        """Wait for every in-flight dispatch to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
