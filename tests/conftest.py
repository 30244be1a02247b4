import re
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from accounts.services.mailer import MailTransport
from accounts.utils.config import AuthSettings, DatabaseSettings, LoggingSettings, MailSettings, Settings
from accounts.utils.exceptions import MailDeliveryFailed
from accounts_web.app import create_app


class FakeClock:
    """Callable clock that only moves when a test says so"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingTransport(MailTransport):
    """Keeps every message instead of sending it"""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = False

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailDeliveryFailed()
        self.sent.append((to, subject, body))

    def last_code(self, to: str = None) -> str:
        for recipient, _, body in reversed(self.sent):
            if to is None or recipient.lower() == to.lower():
                return re.search(r"\b(\d{6})\b", body).group(1)
        raise AssertionError(f"no message sent to {to}")


def make_settings(**auth_overrides) -> Settings:
    return Settings(
        secret_key="test-secret-key",
        database=DatabaseSettings(url="memory://"),
        auth=AuthSettings(bcrypt_rounds=4, **auth_overrides),
        mail=MailSettings(backend="console"),
        logging=LoggingSettings(level="WARNING", format="console"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def app(clock, mailer):
    return create_app(settings=make_settings(), mail_transport=mailer, clock=clock)


@pytest.fixture
def accounts(app):
    return app.state.accounts


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def registration(email: str = "a@test.com", password: str = "secret1", **extra) -> dict:
    payload = {
        "firstName": "Ana",
        "lastName": "Reyes",
        "email": email,
        "password": password,
        "contact": "09171234567",
    }
    payload.update(extra)
    return payload


def register_and_confirm(client: TestClient, mailer: RecordingTransport, email: str = "a@test.com", password: str = "secret1") -> dict:
    res = client.post("/register", json=registration(email, password))
    assert res.status_code == 200, res.text
    res = client.post("/register/confirm", json={"email": email, "otp": mailer.last_code(email)})
    assert res.status_code == 200, res.text
    return res.json()


def make_admin(accounts, email: str = "boss@test.com", password: str = "admin123"):
    from accounts.models.account import ProfileInput

    profile = ProfileInput(firstName="Bea", lastName="Santos", email=email, contact="0917")
    return accounts.store.create_employee(profile, password, "Store Manager")
