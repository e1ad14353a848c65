"""Email notifications for new stock history events.

format_notification() builds the subject, an HTML table and a plain-text
fallback. send_email() delivers them over SMTP with certificate verification
and raises NotificationError on any failure. The checker depends on that:
records are only stored after their email went out.
"""

import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .config import SMTP_HOST, SMTP_PORT, SMTP_TIMEOUT, STOCK_HISTORY_URL
from .errors import NotificationError
from .helpers import mask_email
from .records import InventoryChangeRecord

log = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465

_HEADERS = ("Time", "Item", "Reason", "Qty", "Location")


def _subject(count: int) -> str:
    return f"📦 {count} New Inventory Change{'s' if count != 1 else ''}"


def _html_row(r: InventoryChangeRecord) -> str:
    cells = [
        html.escape(r.timestamp),
        f"<strong>{html.escape(r.item)}</strong>",
        html.escape(r.reason or ""),
        html.escape(r.quantity),
        html.escape(r.location),
    ]
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


def format_notification(records: list[InventoryChangeRecord]) -> tuple[str, str, str]:
    """Format new records as (subject, html_body, text_body), in page order."""
    if not records:
        raise ValueError("format_notification needs at least one record")

    header = "".join(f"<th>{h}</th>" for h in _HEADERS)
    rows = "\n".join(_html_row(r) for r in records)
    html_body = (
        "<h2>📦 New Inventory Changes</h2>\n"
        '<table border="1" cellpadding="5" style="border-collapse: collapse;">\n'
        f"<tr>{header}</tr>\n"
        f"{rows}\n"
        "</table>\n"
        f'<p><a href="{html.escape(STOCK_HISTORY_URL)}">Open stock history</a></p>'
    )

    lines = [
        " | ".join([r.timestamp, r.item, r.reason or "-", r.quantity, r.location])
        for r in records
    ]
    text_body = (
        f"New inventory changes ({len(records)}):\n\n"
        + "\n".join(lines)
        + f"\n\n{STOCK_HISTORY_URL}\n"
    )
    return _subject(len(records)), html_body, text_body


def _build_message(subject: str, html_body: str, text_body: str, sender: str, recipient: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = recipient
    # Last part is the preferred one for multipart/alternative
    message.attach(MIMEText(text_body, "plain", "utf-8"))
    message.attach(MIMEText(html_body, "html", "utf-8"))
    return message


def _connect(host: str, port: int, context: ssl.SSLContext) -> smtplib.SMTP:
    if port == IMPLICIT_TLS_PORT:
        return smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT, context=context)
    return smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT)


def send_email(subject: str, html_body: str, text_body: str, *,
               user: str, password: str, sender: str, recipient: str,
               host: str = SMTP_HOST, port: int = SMTP_PORT) -> None:
    """Send one email. Raises NotificationError on handshake, auth or send failure."""
    message = _build_message(subject, html_body, text_body, sender, recipient)
    context = ssl.create_default_context()
    try:
        with _connect(host, port, context) as server:
            if port != IMPLICIT_TLS_PORT:
                server.starttls(context=context)
            server.login(user, password)
            refused = server.sendmail(sender, [recipient], message.as_string())
    except smtplib.SMTPAuthenticationError as e:
        raise NotificationError(f"SMTP login rejected for {mask_email(user)} ({e.smtp_code})") from e
    except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
        raise NotificationError(f"Email to {mask_email(recipient)} failed: {type(e).__name__}: {e}") from e
    if refused:
        raise NotificationError(f"Recipient refused: {mask_email(recipient)}")
    log.info(f"Email sent to {mask_email(recipient)}: {subject}")


def notify_changes(records: list[InventoryChangeRecord], settings) -> None:
    """Email one bundled alert for all new records. Raises NotificationError."""
    subject, html_body, text_body = format_notification(records)
    send_email(
        subject, html_body, text_body,
        user=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.email_from,
        recipient=settings.alert_email,
    )
