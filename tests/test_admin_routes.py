from fastapi.testclient import TestClient

from conftest import make_admin, register_and_confirm


def admin_client(app, accounts) -> TestClient:
    make_admin(accounts)
    client = TestClient(app)
    res = client.post("/login", json={"email": "boss@test.com", "password": "admin123"})
    assert res.status_code == 200, res.text
    assert res.json()["user"]["role"] == "admin"
    return client


def test_admin_api_requires_session(client: TestClient, mailer):
    assert client.get("/api/users").status_code == 401

    register_and_confirm(client, mailer)
    client.post("/login", json={"email": "a@test.com", "password": "secret1"})
    res = client.get("/api/users")
    assert res.status_code == 403
    assert res.json()["error"] == "Admin only"


def test_list_users_with_search_and_status(app, accounts, client, mailer):
    register_and_confirm(client, mailer, email="ana@test.com")
    register_and_confirm(client, mailer, email="ben@test.com")
    admin = admin_client(app, accounts)

    res = admin.get("/api/users", params={"search": "BEN@"})
    assert res.status_code == 200, res.text
    emails = [u["email"] for u in res.json()["users"]]
    assert emails == ["ben@test.com"]

    res = admin.get("/api/users", params={"status": "inactive"})
    assert res.json()["users"] == []

    res = admin.get("/api/users", params={"limit": 1, "role": "standard"})
    assert res.json()["totalPages"] == 2

    assert admin.get("/api/users", params={"status": "bogus"}).status_code == 400


def test_deactivate_user_writes_audit_log(app, accounts, client, mailer):
    register_and_confirm(client, mailer)
    client.post("/login", json={"email": "a@test.com", "password": "secret1"})
    user = accounts.store.find_by_email("a@test.com")
    admin = admin_client(app, accounts)

    res = admin.patch(f"/api/users/{user.id}", json={"isActive": False})
    assert res.status_code == 200, res.text
    assert res.json()["user"]["isActive"] is False

    # the user's existing session stops working
    assert client.get("/session").status_code == 401

    logs = admin.get("/api/logs").json()["logs"]
    assert logs[0]["action"] == "User Ana Reyes deactivated by Bea Santos"
    assert logs[0]["targetEmail"] == "a@test.com"


def test_is_active_must_be_boolean(app, accounts, client, mailer):
    register_and_confirm(client, mailer)
    user = accounts.store.find_by_email("a@test.com")
    admin = admin_client(app, accounts)

    res = admin.patch(f"/api/users/{user.id}", json={"isActive": "false"})
    assert res.status_code == 400
    assert accounts.store.find_by_id(user.id).is_active is True


def test_update_profile_rejects_taken_email(app, accounts, client, mailer):
    register_and_confirm(client, mailer, email="ana@test.com")
    register_and_confirm(client, mailer, email="ben@test.com")
    ben = accounts.store.find_by_email("ben@test.com")
    admin = admin_client(app, accounts)

    res = admin.patch(f"/api/users/{ben.id}", json={"email": "ANA@test.com"})
    assert res.status_code == 400
    assert res.json()["code"] == "duplicate_email"

    res = admin.patch(f"/api/users/{ben.id}", json={"contact": "0999", "action": "Fixed contact"})
    assert res.status_code == 200
    assert res.json()["user"]["contact"] == "0999"
    assert admin.get("/api/logs").json()["logs"][0]["action"] == "Fixed contact"


def test_patch_unknown_account(app, accounts):
    admin = admin_client(app, accounts)
    res = admin.patch("/api/users/does-not-exist", json={"contact": "1"})
    assert res.status_code == 404
    assert admin.patch("/api/users/does-not-exist", json={}).status_code == 400


def test_create_and_list_employees(app, accounts):
    admin = admin_client(app, accounts)
    res = admin.post(
        "/api/employees",
        json={
            "firstName": "Carlo",
            "lastName": "Lim",
            "email": "carlo@test.com",
            "contact": "0918",
            "password": "staff123",
            "position": "Designer",
        },
    )
    assert res.status_code == 201, res.text
    employee = res.json()["employee"]
    assert employee["role"] == "admin"
    assert employee["isActive"] is True
    assert employee["position"] == "Designer"

    listing = admin.get("/api/employees").json()
    assert {e["email"] for e in listing["employees"]} == {"boss@test.com", "carlo@test.com"}

    logs = admin.get("/api/logs").json()["logs"]
    assert logs[0]["action"] == "Employee Carlo Lim created as admin by Bea Santos"

    # employees log in without an OTP round trip
    fresh = TestClient(app)
    res = fresh.post("/login", json={"email": "carlo@test.com", "password": "staff123"})
    assert res.status_code == 200


def test_create_employee_duplicate_email(app, accounts):
    admin = admin_client(app, accounts)
    res = admin.post(
        "/api/employees",
        json={
            "firstName": "Bea",
            "lastName": "Again",
            "email": "BOSS@test.com",
            "contact": "0918",
            "password": "staff123",
            "position": "Manager",
        },
    )
    assert res.status_code == 400
    assert res.json()["code"] == "duplicate_email"


def test_create_employee_rejects_overlong_password(app, accounts):
    admin = admin_client(app, accounts)
    res = admin.post(
        "/api/employees",
        json={
            "firstName": "Carlo",
            "lastName": "Lim",
            "email": "carlo@test.com",
            "contact": "0918",
            "password": "s" * 80,
            "position": "Designer",
        },
    )
    assert res.status_code == 400
    assert res.json()["code"] == "validation_error"
    assert accounts.store.find_by_email("carlo@test.com") is None
