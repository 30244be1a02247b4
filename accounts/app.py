"""Service wiring for the accounts system"""

from datetime import timedelta
from typing import Optional

from .auth.otp import OtpIssuer
from .auth.passwords import PasswordHasher
from .auth.rate_limiter import LoginRateLimiter
from .auth.service import AuthService
from .auth.tokens import SessionTokenService
from .core.database import DocumentStore
from .services.mailer import MailTransport, build_transport
from .stores.audit_log import AuditLog
from .stores.credential_store import CredentialStore
from .utils.clock import Clock, utcnow
from .utils.config import Settings, load_settings
from .utils.exceptions import DatabaseUnavailable
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


class AccountsApp:
    """Builds and holds every service for one process"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mail_transport: Optional[MailTransport] = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.mail_transport = mail_transport
        self.clock = clock
        self.db: Optional[DocumentStore] = None
        self.hasher: Optional[PasswordHasher] = None
        self.otp: Optional[OtpIssuer] = None
        self.tokens: Optional[SessionTokenService] = None
        self.limiter: Optional[LoginRateLimiter] = None
        self.audit_log: Optional[AuditLog] = None
        self.store: Optional[CredentialStore] = None
        self.auth: Optional[AuthService] = None

    def initialize(self) -> "AccountsApp":
        """
        Load settings and build services.

        Raises ConfigError (fatal) when the secret or database URL is missing.
        """
        if self.settings is None:
            self.settings = load_settings()
        s = self.settings

        setup_logger(
            log_level=s.logging.level,
            log_format=s.logging.format,
            file_path=s.logging.file_path,
            max_bytes=s.logging.max_bytes,
            backup_count=s.logging.backup_count,
        )

        self.db = DocumentStore(
            s.database.url,
            connect_attempts=s.database.connect_attempts,
            write_timeout_seconds=s.database.write_timeout_seconds,
        )
        if self.mail_transport is None:
            self.mail_transport = build_transport(s.mail)

        self.hasher = PasswordHasher(rounds=s.auth.bcrypt_rounds)
        self.otp = OtpIssuer(self.mail_transport, ttl_minutes=s.auth.otp_ttl_minutes, clock=self.clock)
        self.tokens = SessionTokenService(
            s.secret_key,
            ttl=timedelta(hours=s.auth.session_ttl_hours),
            clock=self.clock,
        )
        self.limiter = LoginRateLimiter(
            max_attempts=s.auth.max_login_attempts,
            cooldown_seconds=s.auth.login_cooldown_seconds,
            clock=self.clock,
        )
        self.audit_log = AuditLog(self.db, clock=self.clock)
        self.store = CredentialStore(self.db, self.hasher, self.otp, self.audit_log, clock=self.clock)
        self.auth = AuthService(self.store, self.hasher, self.otp, self.tokens, self.limiter, clock=self.clock)

        logger.info(
            "Accounts services initialized",
            app_name=s.app.name,
            environment=s.app.environment,
            mail_backend=s.mail.backend,
        )
        return self

    def connect(self) -> bool:
        """Try the database once at startup; requests retry lazily if this fails"""
        try:
            self.db.connect()
            return True
        except DatabaseUnavailable:
            logger.warning("Database not reachable at startup; will retry on demand")
            return False
