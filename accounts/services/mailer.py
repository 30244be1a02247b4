"""Outbound mail transports"""

from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage

from ..utils.config import MailSettings
from ..utils.exceptions import MailDeliveryFailed
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MailTransport:
    """Accepts (to, subject, body) and delivers it or raises MailDeliveryFailed"""

    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class SmtpMailTransport(MailTransport):
    """Plain-text delivery over SMTP (implicit TLS or STARTTLS)"""

    def __init__(self, settings: MailSettings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return self.settings.from_address or self.settings.username or "no-reply@example.com"

    def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(body)

        s = self.settings
        ctx = ssl.create_default_context()
        try:
            if s.use_ssl:
                with smtplib.SMTP_SSL(s.host, s.port, timeout=s.timeout, context=ctx) as smtp:
                    self._deliver(smtp, msg)
            else:
                with smtplib.SMTP(s.host, s.port, timeout=s.timeout) as smtp:
                    smtp.starttls(context=ctx)
                    self._deliver(smtp, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email delivery failed", to=to, host=s.host, error=str(e))
            raise MailDeliveryFailed()
        logger.info("Email sent", to=to, subject=subject)

    def _deliver(self, smtp: smtplib.SMTP, msg: EmailMessage) -> None:
        if self.settings.username and self.settings.password:
            smtp.login(self.settings.username, self.settings.password)
        smtp.send_message(msg)


class ConsoleMailTransport(MailTransport):
    """Development backend: writes messages to the log instead of sending"""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email (console backend)", to=to, subject=subject, body=body)


def build_transport(settings: MailSettings) -> MailTransport:
    if settings.backend == "console":
        return ConsoleMailTransport()
    return SmtpMailTransport(settings)
