"""
SMTP delivery and the admin notification e-mails.

``SmtpTransport`` is the blocking transport handed to the notifier. It
retries with exponential backoff on its own; the notifier deadline still
bounds the whole attempt.
"""

import smtplib
import ssl
import time
from collections.abc import Callable
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape

from orderdesk.core.notifier import NotificationTask, NotificationTransportFailure
from orderdesk.shared import Logger
from orderdesk.shared.config import Email, General

logger = Logger(__name__).get_logger()


def build_mime(task: NotificationTask, sender: str, sender_name: str = "") -> MIMEText | MIMEMultipart:
    """Plain, HTML, or multipart/alternative when both bodies are present."""
    if task.html and task.text:
        message = MIMEMultipart("alternative")
        message.attach(MIMEText(task.text, "plain", "utf-8"))
        message.attach(MIMEText(task.html, "html", "utf-8"))
    elif task.html:
        message = MIMEText(task.html, "html", "utf-8")
    elif task.text:
        message = MIMEText(task.text, "plain", "utf-8")
    else:
        raise ValueError("either HTML or text content must be provided")

    message["From"] = formataddr((sender_name, sender)) if sender_name else sender
    message["To"] = task.recipient
    message["Subject"] = task.subject
    if task.reply_to:
        message["Reply-To"] = task.reply_to

    return message


class SmtpTransport:
    """Sends notification tasks over SMTP with STARTTLS and login."""

    def __init__(
        self,
        settings: Email,
        username: str | None = None,
        password: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._username = username
        self._password = password
        self._sleep = sleep

    @property
    def sender(self) -> str:
        return self._settings.from_email or self._username or ""

    def is_configured(self) -> bool:
        return bool(self._settings.smtp_host and self.sender)

    def send(self, task: NotificationTask) -> None:
        if not self.is_configured():
            raise NotificationTransportFailure("SMTP transport is not configured")

        message = build_mime(task, self.sender, self._settings.from_name)
        attempts = max(1, self._settings.max_attempts)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            logger.debug("Attempt %d to send e-mail to %s", attempt, task.recipient)
            try:
                self._deliver(message, [task.recipient])
                return
            except (smtplib.SMTPException, OSError) as e:
                last_error = e
                logger.warning(
                    "Attempt %d/%d to send e-mail failed: %s", attempt, attempts, e
                )

            if attempt < attempts:
                wait = self._settings.backoff * 2 ** (attempt - 1)
                logger.debug("Waiting %.1fs before retrying", wait)
                self._sleep(wait)

        raise NotificationTransportFailure(
            f"failed to send e-mail after {attempts} attempts: {last_error}"
        ) from last_error

    def _deliver(self, message, recipients: list[str]) -> None:
        settings = self._settings
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=settings.timeout
        ) as server:
            if settings.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.sendmail(self.sender, recipients, message.as_string())


# ================================================================================
#       Templates
# ================================================================================
def _admin_recipient(settings: Email) -> str:
    if not settings.admin_email:
        raise NotificationTransportFailure("email.admin_email is not configured")
    return settings.admin_email


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%d %B %Y, %H:%M UTC")


def _render_html(app_name: str, heading: str, rows: list[tuple[str, str]], link=None) -> str:
    row_html = "".join(
        f'<tr><td style="padding:8px 0;color:#aaaaaa">{escape(label)}</td>'
        f'<td style="padding:8px 0;text-align:right">{escape(value)}</td></tr>'
        for label, value in rows
    )
    link_html = ""
    if link:
        text, href = link
        link_html = (
            f'<p style="text-align:center;margin-top:24px">'
            f'<a href="{escape(href, quote=True)}" style="background:#f97316;color:#ffffff;'
            f'padding:12px 24px;border-radius:6px;text-decoration:none">{escape(text)}</a></p>'
        )

    return (
        "<!DOCTYPE html><html><body style=\"background:#111111;color:#ffffff;"
        "font-family:Arial,sans-serif\">"
        '<div style="max-width:640px;margin:0 auto;padding:24px">'
        f"<h1>{escape(heading)}</h1>"
        f'<table style="width:100%;border-collapse:collapse">{row_html}</table>'
        f"{link_html}"
        f'<p style="font-size:11px;color:#888888">Sent automatically by '
        f"<strong>{escape(app_name)}</strong></p>"
        "</div></body></html>"
    )


def _render_text(heading: str, rows: list[tuple[str, str]], link=None) -> str:
    lines = [heading, ""] + [f"{label}: {value}" for label, value in rows]
    if link:
        lines += ["", f"{link[0]}: {link[1]}"]
    return "\n".join(lines) + "\n"


def proof_proxy_url(general: General, object_key: str) -> str:
    """Link to the payment proof through the file proxy, not the bucket."""
    return f"{general.backend_url.rstrip('/')}/api/files/uploads/{object_key}"


def order_notification(
    order_id: int,
    username: str,
    service: str,
    proof_key: str,
    general: General,
    settings: Email,
) -> NotificationTask:
    heading = "New order received"
    rows = [
        ("Order ID", f"#{order_id}"),
        ("Username", username),
        ("Service", service),
        ("Received", _timestamp()),
    ]
    link = ("View payment proof", proof_proxy_url(general, proof_key))

    return NotificationTask(
        recipient=_admin_recipient(settings),
        subject=f"New order #{order_id} - process now",
        html=_render_html(general.app_name, heading, rows, link),
        text=_render_text(heading, rows, link),
        label=f"order {order_id}",
    )


def custom_service_notification(
    request_id: int,
    name: str,
    email: str,
    service: str,
    general: General,
    settings: Email,
) -> NotificationTask:
    heading = "New custom service request"
    rows = [
        ("Request ID", f"#{request_id}"),
        ("Name", name),
        ("Email", email),
        ("Service", service),
        ("Received", _timestamp()),
    ]

    return NotificationTask(
        recipient=_admin_recipient(settings),
        subject=f"Custom service request #{request_id} from {name}",
        html=_render_html(general.app_name, heading, rows),
        text=_render_text(heading, rows),
        reply_to=email,
        label=f"custom service request {request_id}",
    )
