from datetime import timedelta

import pytest
from sqlmodel import select

from conftest import PASSWORD, auth
from services.care_api import auth as auth_routes
from services.care_api import mailer
from services.care_api.security import load_jwt_secret
from shared.models import Customer, PasswordReset, PendingRegistration, User, as_utc, utcnow


def register(client, **fields):
    body = {
        "username": "asha",
        "email": "asha@example.com",
        "password": PASSWORD,
        "role": "customer",
        "full_name": "Asha Patil",
        "phone": "9876543210",
    }
    body.update(fields)
    return client.post("/api/auth/register", json=body)


def test_customer_registration_returns_token(client, session):
    response = register(client, address="Kothrud, Pune")
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["role"] == "customer"

    user = session.exec(select(User).where(User.email == "asha@example.com")).one()
    customer = session.exec(select(Customer).where(Customer.user_id == user.id)).one()
    assert customer.address == "Kothrud, Pune"


def test_timestamps_are_stored_as_utc(client, session):
    assert register(client).status_code == 201
    user = session.exec(select(User).where(User.email == "asha@example.com")).one()

    assert User.__table__.c.created_at.type.timezone is True
    assert abs(utcnow() - as_utc(user.created_at)) < timedelta(minutes=1)


def test_registration_validates_fields(client):
    response = client.post("/api/auth/register", json={"email": "x@example.com"})
    assert response.status_code == 400
    assert "Missing required fields" in response.json()["error"]

    assert register(client, phone="12345").json()["error"] == "Mobile number must be exactly 10 digits"
    assert register(client, role="pirate").status_code == 400


def test_duplicate_email_conflicts(client):
    assert register(client).status_code == 201
    response = register(client, username="other", phone="9123456780")
    assert response.status_code == 409


def test_admin_self_signup_is_restricted(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "ADMIN_EMAIL", "root@example.com")

    assert register(client, role="admin").status_code == 403

    response = register(client, role="admin", email="root@example.com", username="root", phone=None)
    assert response.status_code == 201


def test_doctor_signup_waits_for_approval(client, session):
    response = register(client, role="doctor", email="doc@example.com", username="doc", specialization="Cardiology")
    assert response.status_code == 201
    assert response.json()["requiresApproval"] is True
    assert session.exec(select(PendingRegistration)).one().specialization == "Cardiology"

    login = client.post("/api/auth/login", json={"email": "doc@example.com", "password": PASSWORD})
    assert login.status_code == 403
    assert login.json()["status"] == "pending_approval"


def test_login(client, make_user):
    user = make_user("staff")

    response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id

    wrong = client.post("/api/auth/login", json={"email": user.email, "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Invalid email or password"}


def test_suspended_account_cannot_log_in(client, make_user):
    user = make_user("customer", status="suspended")
    response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 403
    assert response.json()["status"] == "suspended"

    assert client.get("/api/auth/profile", headers=auth(user)).status_code == 403


def test_profile_requires_token(client, make_user):
    assert client.get("/api/auth/profile").json() == {"error": "Access token required"}
    bad = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 403

    user = make_user("customer")
    profile = client.get("/api/auth/profile", headers=auth(user)).json()["user"]
    assert profile["email"] == user.email
    assert "password_hash" not in profile


def test_change_password(client, make_user):
    user = make_user("customer")
    headers = auth(user)

    wrong = client.post(
        "/api/auth/change-password", headers=headers,
        json={"currentPassword": "nope", "newPassword": "newpass1"},
    )
    assert wrong.status_code == 401

    short = client.post(
        "/api/auth/change-password", headers=headers,
        json={"currentPassword": PASSWORD, "newPassword": "abc"},
    )
    assert short.status_code == 400

    ok = client.post(
        "/api/auth/change-password", headers=headers,
        json={"currentPassword": PASSWORD, "newPassword": "newpass1"},
    )
    assert ok.status_code == 200
    assert client.post("/api/auth/login", json={"email": user.email, "password": "newpass1"}).status_code == 200


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(mailer, "smtp_configured", lambda: True)
    monkeypatch.setattr(mailer, "send_reset_email", lambda to, token: sent.append((to, token)))
    return sent


def test_forgot_password_hides_unknown_emails(client, outbox):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert outbox == []


def test_forgot_password_without_smtp(client, make_user, monkeypatch):
    monkeypatch.setattr(mailer, "smtp_configured", lambda: False)
    user = make_user("customer")
    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 500
    assert "SMTP" in response.json()["error"]


def test_reset_password_flow(client, make_user, outbox):
    user = make_user("customer")
    assert client.post("/api/auth/forgot-password", json={"email": user.email}).status_code == 200
    (to, token), = outbox
    assert to == user.email

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "fresh123"})
    assert response.status_code == 200
    assert client.post("/api/auth/login", json={"email": user.email, "password": "fresh123"}).status_code == 200

    # Tokens are single use
    again = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "fresh456"})
    assert again.status_code == 400


def test_expired_reset_token(client, session, make_user):
    user = make_user("customer")
    session.add(PasswordReset(email=user.email, token="old", expires_at=utcnow() - timedelta(minutes=1)))
    session.commit()

    response = client.post("/api/auth/reset-password", json={"token": "old", "newPassword": "fresh123"})
    assert response.json() == {"error": "Invalid or expired token"}


def test_forgot_password_is_rate_limited(client, make_user, outbox):
    user = make_user("customer")
    codes = [
        client.post("/api/auth/forgot-password", json={"email": user.email}).status_code
        for _ in range(auth_routes.RESET_RATE_LIMIT + 1)
    ]
    assert codes[:-1] == [200] * auth_routes.RESET_RATE_LIMIT
    assert codes[-1] == 429


def test_missing_jwt_secret_is_replaced_and_logged(monkeypatch, caplog):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with caplog.at_level("WARNING"):
        first = load_jwt_secret()
    assert "JWT_SECRET not set" in caplog.text
    assert first != load_jwt_secret()

    monkeypatch.setenv("JWT_SECRET", "configured")
    assert load_jwt_secret() == "configured"
