"""One-time passcodes for email verification"""

import secrets
from datetime import datetime, timedelta

from ..services.mailer import MailTransport
from ..utils.clock import Clock, utcnow
from ..utils.logger import get_logger

logger = get_logger(__name__)

OTP_TTL_MINUTES = 10
OTP_SUBJECT = "Verify Your Email Address"


class OtpIssuer:
    """Generates 6-digit codes, computes their expiry and mails them"""

    def __init__(self, transport: MailTransport, ttl_minutes: int = OTP_TTL_MINUTES, clock: Clock = utcnow):
        self.transport = transport
        self.ttl_minutes = ttl_minutes
        self.clock = clock

    @staticmethod
    def generate() -> str:
        """Uniform over 100000-999999"""
        return str(100000 + secrets.randbelow(900000))

    def expiry_from_now(self) -> datetime:
        return self.clock() + timedelta(minutes=self.ttl_minutes)

    def message_body(self, code: str, resend: bool = False) -> str:
        intro = "Your new verification code is" if resend else "Your verification code is"
        return (
            f"{intro}: {code}\n\n"
            f"This code will expire in {self.ttl_minutes} minutes.\n\n"
            "If you did not request this code, please ignore this email.\n"
        )

    def dispatch(self, email: str, code: str, resend: bool = False) -> None:
        """Send the code; raises MailDeliveryFailed"""
        self.transport.send(email, OTP_SUBJECT, self.message_body(code, resend=resend))
        logger.info("Verification code sent", email=email, resend=resend)
