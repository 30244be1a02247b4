"""
Signed, time-limited session tokens.

Tokens are itsdangerous-signed claim sets carrying their own iat/exp.
There is no server-side session table: validity is signature plus expiry,
so logout on the client does not revoke a token that was copied earlier.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, URLSafeSerializer
from pydantic import ValidationError as SchemaError

from ..models.account import SessionClaims
from ..utils.clock import Clock, utcnow
from ..utils.exceptions import ConfigError, TokenInvalidOrExpired

DEFAULT_TTL = timedelta(days=1)
TOKEN_SALT = "storefront-accounts-session"


class SessionTokenService:
    def __init__(self, secret_key: str, ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        if not secret_key:
            raise ConfigError("A signing secret is required for session tokens")
        self.ttl = ttl
        self.clock = clock
        self._serializer = URLSafeSerializer(secret_key=secret_key, salt=TOKEN_SALT)

    @property
    def max_age_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, claims: Dict[str, Any], ttl: Optional[timedelta] = None) -> str:
        """Sign the claim set with issued-at and expiry (unix seconds) added"""
        now = int(self.clock().timestamp())
        lifetime = int((ttl or self.ttl).total_seconds())
        payload = {**claims, "iat": now, "exp": now + lifetime}
        return self._serializer.dumps(payload)

    def verify(self, token: Optional[str]) -> SessionClaims:
        """Return the claims or raise TokenInvalidOrExpired"""
        if not token:
            raise TokenInvalidOrExpired()
        try:
            payload = self._serializer.loads(token)
        except BadSignature:
            raise TokenInvalidOrExpired("Invalid token")
        if not isinstance(payload, dict):
            raise TokenInvalidOrExpired("Invalid token")
        try:
            claims = SessionClaims.model_validate(payload)
        except SchemaError:
            raise TokenInvalidOrExpired("Invalid token")
        if self.clock().timestamp() >= claims.expires_at:
            raise TokenInvalidOrExpired("Token has expired")
        return claims
