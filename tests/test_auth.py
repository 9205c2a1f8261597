from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from structlog.testing import capture_logs

import main
import models
from tests.helpers import auth, login, register


def test_register_returns_token_and_buyer(client):
    data = register(client, "Buyer@Example.com", name="Bea Buyer")
    assert data["token"]
    user = data["user"]
    assert user["email"] == "buyer@example.com"
    assert user["role"] == "buyer"
    assert user["status"] == "active"
    assert user["emailVerified"] is None
    assert "passwordHash" not in user and "password_hash" not in user


def test_register_keeps_verification_token_out_of_info_logs(client, db):
    with capture_logs() as logs:
        register(client, "quiet@example.com")
    token = db.scalar(select(models.VerificationToken.token).where(models.VerificationToken.identifier == "quiet@example.com"))
    registered = next(entry for entry in logs if entry["event"] == "user_registered")
    assert "verification_expires" in registered
    assert all(token not in str(entry) for entry in logs if entry["log_level"] != "debug")


def test_register_duplicate_email(client):
    register(client, "dup@example.com")
    r = client.post("/api/auth/register", json={"name": "Again", "email": "dup@example.com", "password": "secret123"})
    assert r.status_code == 400


def test_register_cannot_claim_admin(client):
    r = client.post("/api/auth/register", json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "admin"})
    assert r.status_code == 422


def test_login_and_me(client):
    register(client, "me@example.com", name="Mia")
    token = login(client, "me@example.com", "secret123")
    r = client.get("/api/auth/me", headers=auth(token))
    assert r.status_code == 200
    assert r.json()["name"] == "Mia"


def test_login_wrong_password(client):
    register(client, "wrong@example.com")
    r = client.post("/api/auth/login", json={"email": "wrong@example.com", "password": "nope"})
    assert r.status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers=auth("garbage")).status_code == 401


def test_logout_ends_session(client, db):
    token = register(client, "out@example.com")["token"]
    assert client.post("/api/auth/logout", headers=auth(token)).status_code == 200
    assert client.get("/api/auth/me", headers=auth(token)).status_code == 401
    assert db.scalars(select(models.Session)).all() == []


def test_expired_session_rejected(client, db):
    token = register(client, "late@example.com")["token"]
    session = db.scalar(select(models.Session))
    session.expires = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()
    assert client.get("/api/auth/me", headers=auth(token)).status_code == 401


def test_verify_email(client, db):
    register(client, "verify@example.com")
    token = db.scalar(select(models.VerificationToken.token).where(models.VerificationToken.identifier == "verify@example.com"))
    r = client.post("/api/auth/verify", json={"email": "verify@example.com", "token": token})
    assert r.status_code == 200
    user = db.scalar(select(models.User).where(models.User.email == "verify@example.com"))
    assert user.email_verified is not None
    # tokens are single use
    r = client.post("/api/auth/verify", json={"email": "verify@example.com", "token": token})
    assert r.status_code == 400


def test_verify_email_expired_token(client, db):
    register(client, "stale@example.com")
    record = db.scalar(select(models.VerificationToken))
    record.expires = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()
    r = client.post("/api/auth/verify", json={"email": "stale@example.com", "token": record.token})
    assert r.status_code == 400
    assert r.json()["detail"] == "Verification token expired"


def test_admin_lists_users_without_hashes(client, admin_token):
    register(client, "someone@example.com")
    r = client.get("/api/users", headers=auth(admin_token))
    assert r.status_code == 200
    emails = {u["email"] for u in r.json()}
    assert {"admin@example.com", "someone@example.com"} <= emails
    assert all("passwordHash" not in u for u in r.json())


def test_buyer_cannot_list_users(client):
    token = register(client, "nosy@example.com")["token"]
    assert client.get("/api/users", headers=auth(token)).status_code == 403


def test_admin_changes_role(client, admin_token):
    user = register(client, "promote@example.com")["user"]
    r = client.patch(f"/api/users/{user['id']}/role", json={"role": "seller"}, headers=auth(admin_token))
    assert r.status_code == 200
    assert r.json()["role"] == "seller"


def test_suspending_user_drops_sessions(client, db, admin_token):
    data = register(client, "bad@example.com")
    r = client.patch(f"/api/users/{data['user']['id']}/status", json={"status": "suspended"}, headers=auth(admin_token))
    assert r.status_code == 200
    assert r.json()["status"] == "suspended"
    assert client.get("/api/auth/me", headers=auth(data["token"])).status_code == 401
    r = client.post("/api/auth/login", json={"email": "bad@example.com", "password": "secret123"})
    assert r.status_code == 403
    assert db.scalars(select(models.Session).where(models.Session.user_id == data["user"]["id"])).all() == []


def test_deleting_user_cascades_accounts_and_sessions(client, db):
    data = register(client, "gone@example.com")
    user = db.get(models.User, data["user"]["id"])
    db.add(models.Account(user_id=user.id, type="oauth", provider="github", provider_account_id="42"))
    db.commit()
    db.delete(user)
    db.commit()
    assert db.scalars(select(models.Account)).all() == []
    assert db.scalars(select(models.Session)).all() == []


def test_login_rate_limit(client):
    for _ in range(main.RATE_LIMIT_MAX_ATTEMPTS):
        client.post("/api/auth/login", json={"email": "x@example.com", "password": "nope"})
    r = client.post("/api/auth/login", json={"email": "x@example.com", "password": "nope"})
    assert r.status_code == 429
