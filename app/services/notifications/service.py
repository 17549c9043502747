"""
Transactional e-mail over SMTP (stdlib smtplib + EmailMessage).

One connection per message, no queue. Callers treat sends as fire-and-forget,
but a failed send raises NotificationError so the request boundary can report it.
"""
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

from app.core.config import settings
from app.core.errors import NotificationError
from app.schemas.payments import PaymentEvent
from app.utils.metrics import emails_sent_total

logger = logging.getLogger(__name__)


def _signature() -> str:
    return f"<br/>\n<p>&mdash; {escape(settings.email_sender_name)}</p>"


def _buyer_line(email: str | None) -> str:
    return f"<p>Buyer Email: {escape(email)}</p>" if email else ""


class EmailNotifier:
    def __init__(self) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._user = settings.email_user
        self._password = settings.email_pass
        self._sender = formataddr((settings.email_sender_name, settings.email_user))

    def _connect(self) -> smtplib.SMTP:
        if settings.smtp_use_ssl:
            return smtplib.SMTP_SSL(self._host, self._port, timeout=settings.smtp_timeout)
        smtp = smtplib.SMTP(self._host, self._port, timeout=settings.smtp_timeout)
        smtp.starttls()
        return smtp

    def build_message(self, to: str, subject: str, html: str, cc: str | None = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = to
        if cc:
            msg["Cc"] = cc
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")
        return msg

    def send(self, kind: str, msg: EmailMessage) -> None:
        """Deliver one message. Raises NotificationError on any SMTP/socket failure."""
        try:
            with self._connect() as smtp:
                smtp.login(self._user, self._password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            emails_sent_total.labels(kind=kind, status="error").inc()
            logger.error("email_send_failed", extra={"kind": kind, "error": str(e)})
            raise NotificationError("Email delivery failed", details=str(e)) from e
        emails_sent_total.labels(kind=kind, status="success").inc()
        logger.info("email_sent", extra={"kind": kind})

    def _send_admin(self, kind: str, subject: str, html: str) -> None:
        to, cc = settings.admin_recipients
        self.send(kind, self.build_message(to, subject, html, cc=cc))

    def send_stk_initiated(self, phone: str, amount: int | float | None, email: str | None = None) -> None:
        html = f"""
<h2>STK Push Initiated</h2>
<p>Phone: {escape(str(phone))}</p>
<p>Amount: Ksh {escape(str(amount))}</p>
{_buyer_line(email)}
<p>Status: Payment initiation in progress</p>
{_signature()}
"""
        self._send_admin("stk_initiated", "STK Push Initiated", html)

    def send_delivery_initiated(self, phone: str, amount: int | float | None, address: str) -> None:
        html = f"""
<h2>Delivery STK Push Initiated</h2>
<p>Phone: {escape(str(phone))}</p>
<p>Amount: Ksh {escape(str(amount))}</p>
<p>Delivery Address: {escape(address)}</p>
<p>Status: Payment initiation in progress</p>
{_signature()}
"""
        self._send_admin("delivery_initiated", "Delivery Payment STK Initiated", html)

    def send_purchase_admin(self, event: PaymentEvent, link: str) -> None:
        title = escape(settings.ebook_title)
        html = f"""
<h2>New Purchase Notification</h2>
<p>Phone: {escape(event.payer_phone)}</p>
<p>Amount Paid: Ksh {escape(str(event.amount_paid))}</p>
{_buyer_line(event.payer_email)}
<p>eBook Link (buyer only): <a href="{escape(link)}" target="_blank">Read {title}</a></p>
{_signature()}
"""
        self._send_admin("purchase_admin", "New Book Purchase Received", html)

    def send_purchase_buyer(self, email: str, link: str, ttl_minutes: int) -> None:
        title = escape(settings.ebook_title)
        html = f"""
<h2>Payment Successful!</h2>
<p>Thank you for your purchase. You can now view your eBook below (valid for {ttl_minutes} minutes):</p>
<p><a href="{escape(link)}" target="_blank">Read {title}</a></p>
<p>This link will expire automatically for your security.</p>
{_signature()}
"""
        self.send("purchase_buyer", self.build_message(email, "Your eBook Purchase Confirmation", html))
        logger.info("buyer_email_sent", extra={"email": email})
