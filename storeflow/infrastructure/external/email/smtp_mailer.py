"""SMTP mail transport (aiosmtplib).

``MAIL_SECURE=true`` connects with implicit TLS (usually port 465);
otherwise STARTTLS is negotiated when the server offers it.
"""

from email.message import EmailMessage

import aiosmtplib

from storeflow.application.dtos.workflow import MailMessage
from storeflow.core.config import Settings
from storeflow.domain.exceptions import TransientError
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class SmtpMailer:
    """IMailer over one SMTP server; a connection is opened per message."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        secure: bool = False,
        default_sender: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.secure = secure
        self.default_sender = default_sender or username
        self.timeout = timeout

    def _build(self, message: MailMessage) -> EmailMessage:
        sender = message.sender or self.default_sender
        if not sender:
            raise TransientError("No sender address configured (MAIL_FROM or MAIL_USER)")
        email = EmailMessage()
        email["From"] = sender
        email["To"] = ", ".join(message.to)
        email["Subject"] = message.subject
        email.set_content(message.html, subtype="html")
        return email

    async def send(self, message: MailMessage) -> None:
        """Submit the message. Raises TransientError on any SMTP failure."""
        email = self._build(message)
        try:
            await aiosmtplib.send(
                email,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.secure,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise TransientError(
                f"Email delivery failed: {e}",
                error_code="MAIL_DELIVERY_FAILED",
                details={"host": self.host},
            ) from e
        logger.info("Email sent to %d recipient(s)", len(message.to))


def build_mailer(settings: Settings) -> SmtpMailer | None:
    """Return a mailer when MAIL_HOST is set, else None (email action disabled)."""
    if not settings.mail_enabled:
        logger.info("MAIL_HOST not set; email actions are disabled")
        return None
    return SmtpMailer(
        host=settings.mail_host or "",
        port=settings.mail_port,
        username=settings.mail_user,
        password=settings.mail_pass.get_secret_value() if settings.mail_pass else None,
        secure=settings.mail_secure,
        default_sender=settings.mail_from,
        timeout=settings.mail_timeout_seconds,
    )
