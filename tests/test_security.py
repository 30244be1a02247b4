from datetime import timedelta

import pytest

from accounts.auth.otp import OtpIssuer
from accounts.auth.passwords import PasswordHasher
from accounts.auth.rate_limiter import LimiterState, LoginRateLimiter
from accounts.auth.tokens import SessionTokenService
from accounts.models.account import Role
from accounts.utils.exceptions import ConfigError, TokenInvalidOrExpired, ValidationError
from conftest import FakeClock, RecordingTransport


CLAIMS = {
    "id": "abc",
    "accountId": "ABCD-1234",
    "email": "a@test.com",
    "firstName": "Ana",
    "lastName": "Reyes",
    "role": "standard",
    "isActive": True,
}


def test_password_hash_and_verify():
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash("secret1")
    assert hashed != "secret1"
    assert hashed.startswith("$2")
    assert hasher.verify("secret1", hashed)
    assert not hasher.verify("secret2", hashed)
    # same password, different salt
    assert hasher.hash("secret1") != hashed


def test_password_hash_rejects_over_72_bytes():
    hasher = PasswordHasher(rounds=4)
    with pytest.raises(ValidationError):
        hasher.hash("p" * 80)
    # multi-byte characters count by their utf-8 length
    with pytest.raises(ValidationError):
        hasher.hash("\u00e9" * 37)
    hashed = hasher.hash("p" * 72)
    assert hasher.verify("p" * 72, hashed)
    assert not hasher.verify("p" * 80, hashed)


def test_password_verify_malformed_hash():
    assert PasswordHasher(rounds=4).verify("secret1", "not-a-bcrypt-hash") is False


def test_otp_codes_are_six_digits():
    for _ in range(200):
        code = OtpIssuer.generate()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_otp_expiry_and_dispatch():
    clock = FakeClock()
    transport = RecordingTransport()
    issuer = OtpIssuer(transport, ttl_minutes=10, clock=clock)
    assert issuer.expiry_from_now() == clock() + timedelta(minutes=10)

    issuer.dispatch("a@test.com", "123456")
    to, subject, body = transport.sent[0]
    assert to == "a@test.com"
    assert subject == "Verify Your Email Address"
    assert body.startswith("Your verification code is: 123456")
    assert "If you did not request this code, please ignore this email." in body


def test_token_round_trip_and_expiry():
    clock = FakeClock()
    tokens = SessionTokenService("secret", ttl=timedelta(hours=24), clock=clock)
    token = tokens.issue(CLAIMS)

    claims = tokens.verify(token)
    assert claims.email == "a@test.com"
    assert claims.role == Role.STANDARD
    assert claims.expires_at - claims.issued_at == 24 * 3600

    clock.advance(hours=23, minutes=59, seconds=59)
    assert tokens.verify(token).id == "abc"

    clock.advance(seconds=1)
    with pytest.raises(TokenInvalidOrExpired):
        tokens.verify(token)


def test_token_signed_with_other_secret_is_rejected():
    clock = FakeClock()
    token = SessionTokenService("other", clock=clock).issue(CLAIMS)
    with pytest.raises(TokenInvalidOrExpired):
        SessionTokenService("secret", clock=clock).verify(token)


@pytest.mark.parametrize("token", [None, "", "abc", "a.b.c"])
def test_token_garbage_is_rejected(token):
    with pytest.raises(TokenInvalidOrExpired):
        SessionTokenService("secret").verify(token)


def test_token_service_requires_secret():
    with pytest.raises(ConfigError):
        SessionTokenService("")


def test_limiter_state_machine():
    clock = FakeClock()
    limiter = LoginRateLimiter(max_attempts=3, cooldown_seconds=60, clock=clock)
    assert limiter.state("a@test.com") == LimiterState.CLEAN

    assert limiter.record_failure("a@test.com") == 1
    assert limiter.state("a@test.com") == LimiterState.WARMING
    assert limiter.check("a@test.com") == (True, 0)

    limiter.record_failure("a@test.com")
    assert limiter.record_failure("A@test.com") == 3
    assert limiter.state("a@test.com") == LimiterState.COOLING

    clock.advance(seconds=20)
    allowed, wait = limiter.check("a@test.com")
    assert allowed is False
    assert wait == 40

    # refused checks do not extend the window
    clock.advance(seconds=40)
    assert limiter.check("a@test.com") == (True, 0)


def test_limiter_failure_after_cooldown_starts_fresh():
    clock = FakeClock()
    limiter = LoginRateLimiter(max_attempts=3, cooldown_seconds=60, clock=clock)
    for _ in range(3):
        limiter.record_failure("a@test.com")
    clock.advance(seconds=61)
    assert limiter.record_failure("a@test.com") == 1
    assert limiter.state("a@test.com") == LimiterState.WARMING


def test_limiter_warming_count_expires():
    clock = FakeClock()
    limiter = LoginRateLimiter(max_attempts=3, cooldown_seconds=60, clock=clock)
    limiter.record_failure("a@test.com")
    limiter.record_failure("a@test.com")
    clock.advance(hours=1)
    assert limiter.record_failure("a@test.com") == 1
    assert limiter.state("a@test.com") == LimiterState.WARMING
    assert limiter.check("a@test.com") == (True, 0)


def test_limiter_reset():
    limiter = LoginRateLimiter()
    limiter.record_failure("a@test.com")
    limiter.reset("A@TEST.COM")
    assert limiter.attempts("a@test.com") is None
    assert limiter.state("a@test.com") == LimiterState.CLEAN
