"""Mail transports used by the dispatcher.

`send(to, subject, html, text)` returns a `SendResult` or raises; the
dispatcher treats any exception, including an SMTP timeout, as a delivery
failure.
"""

import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from uuid import uuid4

from payplan.common.config import CommonSettings, settings
from payplan.common.logging import logger


class TransportError(RuntimeError):
    """Raised when a transport cannot deliver or is not configured."""


@dataclass(frozen=True)
class SendResult:
    message_id: str


class ConsoleTransport:
    """Logs the envelope instead of sending; for local runs."""

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> SendResult:
        message_id = f"console-{uuid4()}"
        logger.info("email_console to=%s subject=%s message_id=%s", to, subject, message_id)
        return SendResult(message_id=message_id)


class SmtpTransport:
    """Multipart (text + HTML) delivery over SMTP with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> SendResult:
        if not self.host or not self.sender:
            raise TransportError(
                "Email is not configured. Set EMAIL_TRANSPORT=console for local testing, "
                "or configure SMTP_HOST and SMTP_FROM."
            )
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message_id = make_msgid()
        message["Message-ID"] = message_id
        message.set_content(text or "")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)
        logger.info("email_sent transport=smtp message_id=%s", message_id)
        return SendResult(message_id=message_id)


def build_transport(config: CommonSettings = settings):
    """Pick the transport named by `EMAIL_TRANSPORT`."""

    kind = config.email_transport.strip().lower()
    if kind == "console":
        return ConsoleTransport()
    if kind == "smtp":
        return SmtpTransport(
            host=config.smtp_host.strip(),
            port=config.smtp_port,
            sender=config.smtp_from.strip(),
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            timeout=config.smtp_timeout_seconds,
        )
    raise TransportError(f"unknown EMAIL_TRANSPORT {config.email_transport!r}")
