"""Custom exceptions for the accounts system"""

from typing import Any, Dict, Optional


class AccountsError(Exception):
    """Base exception for recoverable account/session failures"""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        body.update(self.extra)
        return body


class ValidationError(AccountsError):
    """Malformed or missing input"""
    status_code = 400
    code = "validation_error"


class DuplicateEmail(AccountsError):
    """Email already held by another account (pending or active)"""
    status_code = 400
    code = "duplicate_email"

    def __init__(self, message: str = "Email already registered", **extra: Any):
        super().__init__(message, **extra)


class NoPendingRegistration(AccountsError):
    status_code = 400
    code = "no_pending_registration"

    def __init__(self, message: str = "No pending registration for this email", **extra: Any):
        super().__init__(message, **extra)


class AlreadyVerified(AccountsError):
    status_code = 400
    code = "already_verified"

    def __init__(self, message: str = "Account already verified", **extra: Any):
        super().__init__(message, **extra)


class InvalidOrExpiredOtp(AccountsError):
    """Verification code does not match or its window has closed"""
    status_code = 400
    code = "invalid_or_expired_otp"

    def __init__(self, message: str, expired: bool = False, expires_in: Optional[int] = None):
        super().__init__(message, expired=expired, expires_in=expires_in)
        self.expired = expired
        self.expires_in = expires_in


class InvalidCredentials(AccountsError):
    status_code = 401
    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials", attempts_left: Optional[int] = None):
        super().__init__(message, attempts_left=attempts_left)
        self.attempts_left = attempts_left


class TokenInvalidOrExpired(AccountsError):
    """Session token is malformed, forged or past its expiry"""
    status_code = 401
    code = "not_authenticated"

    def __init__(self, message: str = "Not authenticated", **extra: Any):
        super().__init__(message, **extra)


class InactiveAccount(AccountsError):
    status_code = 403
    code = "inactive_account"

    def __init__(self, message: str = "Account is not active", **extra: Any):
        super().__init__(message, **extra)


class PermissionDenied(AccountsError):
    status_code = 403
    code = "permission_denied"

    def __init__(self, message: str = "Admin only", **extra: Any):
        super().__init__(message, **extra)


class AccountNotFound(AccountsError):
    status_code = 404
    code = "not_found"

    def __init__(self, message: str = "Account not found", **extra: Any):
        super().__init__(message, **extra)


class TooManyAttempts(AccountsError):
    """Login rate limit exceeded"""
    status_code = 429
    code = "too_many_attempts"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message, lockout=True, retry_after=retry_after)
        self.retry_after = retry_after


class MailDeliveryFailed(AccountsError):
    status_code = 500
    code = "mail_delivery_failed"

    def __init__(self, message: str = "Failed to send verification code", **extra: Any):
        super().__init__(message, **extra)


class DatabaseUnavailable(AccountsError):
    status_code = 503
    code = "database_unavailable"

    def __init__(self, message: str = "Database unavailable", **extra: Any):
        super().__init__(message, **extra)


class ConfigError(Exception):
    """Fatal configuration error; raised at startup, never served"""
    pass
