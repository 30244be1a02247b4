"""
Registration, verification, login and session checks.

Each public method is blocking (bcrypt, store I/O, SMTP); the web layer
runs them in a threadpool so one slow request does not stall the others.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.account import Account, ProfileInput, SessionClaims
from ..stores.credential_store import CredentialStore
from ..utils.clock import Clock, utcnow
from ..utils.exceptions import (
    InactiveAccount,
    InvalidCredentials,
    MailDeliveryFailed,
    TokenInvalidOrExpired,
    TooManyAttempts,
)
from ..utils.logger import get_logger
from .otp import OtpIssuer
from .passwords import PasswordHasher
from .rate_limiter import LoginRateLimiter
from .tokens import SessionTokenService

logger = get_logger(__name__)


@dataclass
class PendingRegistration:
    account: Account
    otp_expiry: datetime
    expires_in: int


@dataclass
class LoginResult:
    account: Account
    token: str
    claims: SessionClaims


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        otp: OtpIssuer,
        tokens: SessionTokenService,
        limiter: LoginRateLimiter,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.otp = otp
        self.tokens = tokens
        self.limiter = limiter
        self.clock = clock
        self._unknown_account_hash: Optional[str] = None

    def _dummy_hash(self) -> str:
        if self._unknown_account_hash is None:
            self._unknown_account_hash = self.hasher.hash(secrets.token_urlsafe(16))
        return self._unknown_account_hash

    def _pending(self, account: Account) -> PendingRegistration:
        expires_in = max(0, int((account.otp_expiry - self.clock()).total_seconds()))
        return PendingRegistration(account=account, otp_expiry=account.otp_expiry, expires_in=expires_in)

    def register(self, profile: ProfileInput, password: str) -> PendingRegistration:
        """
        Create a pending account and mail its code.

        Returns only after the mail transport accepted the message. If it
        fails, the pending account is deleted again so nobody is left with
        an account they can never confirm.
        """
        account = self.store.create_pending(profile, password)
        try:
            self.otp.dispatch(account.email, account.otp_code)
        except MailDeliveryFailed:
            self.store.delete_pending(account.id)
            raise
        return self._pending(account)

    def confirm(self, email: str, otp_code: str) -> Account:
        return self.store.activate(email, otp_code)

    def resend(self, email: str) -> PendingRegistration:
        account = self.store.reissue_otp(email)
        self.otp.dispatch(account.email, account.otp_code, resend=True)
        return self._pending(account)

    def _failed_attempt(self, email: str) -> Exception:
        count = self.limiter.record_failure(email)
        if count >= self.limiter.max_attempts:
            return TooManyAttempts(
                "Too many failed attempts. Try again later.",
                retry_after=int(self.limiter.cooldown_seconds),
            )
        return InvalidCredentials(attempts_left=self.limiter.max_attempts - count)

    def login(self, email: str, password: str) -> LoginResult:
        allowed, retry_after = self.limiter.check(email)
        if not allowed:
            raise TooManyAttempts("Too many failed attempts. Try again later.", retry_after=retry_after)

        account = self.store.find_by_email(email)
        if account is None:
            # unknown emails pay the same bcrypt cost as a wrong password
            self.hasher.verify(password, self._dummy_hash())
            logger.info("Login failed: unknown email")
            raise self._failed_attempt(email)

        password_hash = account.password_hash or account.pending_password_hash
        if not password_hash or not self.hasher.verify(password, password_hash):
            logger.info("Login failed: wrong password", id=account.id)
            raise self._failed_attempt(email)

        if account.pending_registration:
            raise InactiveAccount("Please verify your email before logging in")
        if not account.is_active:
            raise InactiveAccount()

        self.limiter.reset(email)
        claims_payload = self.claims_for(account)
        token = self.tokens.issue(claims_payload)
        claims = self.tokens.verify(token)
        logger.info("Login succeeded", id=account.id, role=account.role.value)
        return LoginResult(account=account, token=token, claims=claims)

    @staticmethod
    def claims_for(account: Account) -> Dict[str, Any]:
        return {
            "id": account.id,
            "accountId": account.account_id,
            "email": account.email,
            "firstName": account.first_name,
            "lastName": account.last_name,
            "role": account.role.value,
            "contact": account.contact or "",
            "address": account.address or "",
            "gender": account.gender or "",
            "isActive": account.is_active,
        }

    def verify_session(self, token: str) -> SessionClaims:
        """Signature and expiry, then confirm the account is still active"""
        claims = self.tokens.verify(token)
        account = self.store.find_by_id(claims.id)
        if account is None or not account.is_active:
            raise TokenInvalidOrExpired()
        return claims
