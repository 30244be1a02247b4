from unittest.mock import patch

from accounts.app import AccountsApp
from accounts_ui import admin_console
from conftest import FakeClock, RecordingTransport, make_admin, make_settings


def build_app() -> AccountsApp:
    app = AccountsApp(make_settings(), mail_transport=RecordingTransport(), clock=FakeClock()).initialize()
    assert app.connect()
    return app


def test_create_admin_command():
    app = build_app()
    answers = iter(["Bea", "Santos", "boss@test.com", "0917", "Owner", "admin123", "admin123"])
    with patch.object(admin_console.Prompt, "ask", side_effect=lambda *a, **k: next(answers)):
        assert admin_console.main(["create-admin"], app=app) == 0

    admin = app.store.find_by_email("boss@test.com")
    assert admin.is_active is True
    assert admin.position == "Owner"
    assert app.audit_log.recent()[0].action == "Employee Bea Santos created as admin by System"


def test_create_admin_rejects_mismatched_passwords():
    app = build_app()
    answers = iter(["Bea", "Santos", "boss@test.com", "0917", "Owner", "admin123", "different"])
    with patch.object(admin_console.Prompt, "ask", side_effect=lambda *a, **k: next(answers)):
        assert admin_console.main(["create-admin"], app=app) == 1
    assert app.store.find_by_email("boss@test.com") is None


def test_create_admin_rejects_overlong_password():
    app = build_app()
    long_password = "a" * 80
    answers = iter(["Bea", "Santos", "boss@test.com", "0917", "Owner", long_password, long_password])
    with patch.object(admin_console.Prompt, "ask", side_effect=lambda *a, **k: next(answers)):
        assert admin_console.main(["create-admin"], app=app) == 1
    assert app.store.find_by_email("boss@test.com") is None


def test_accounts_and_logs_commands(capsys):
    app = build_app()
    make_admin(app)
    assert admin_console.main(["accounts", "--role", "admin"], app=app) == 0
    assert admin_console.main(["logs", "--limit", "5"], app=app) == 0
    out = capsys.readouterr().out
    assert "boss@test.com" in out
    assert "Bea Santos" in out
