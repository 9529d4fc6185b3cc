from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from branch_transfers.config import settings
from branch_transfers.models.user import User, UserRole
from branch_transfers.services import auth_service


def test_login_sets_token_that_authenticates(api, db):
    auth_service.create_user(db, "clerk", "s3cret", role="staff")
    db.commit()
    client = api(None)

    resp = client.post("/api/v1/auth/login", json={"username": "clerk", "password": "s3cret"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    client.cookies.set("token", token)
    me = client.get("/api/v1/auth/me").json()
    assert me["username"] == "clerk"
    assert me["role"] == "staff"


def test_login_with_wrong_password(api, db):
    auth_service.create_user(db, "clerk", "s3cret")
    db.commit()
    resp = api(None).post("/api/v1/auth/login", json={"username": "clerk", "password": "nope"})
    assert resp.status_code == 401


def test_disabled_user_is_rejected(api, db, users):
    client = api("staff")
    users["staff"].active = False
    db.commit()
    assert client.get("/api/v1/auth/me").status_code == 401


def test_user_management_is_admin_only(api):
    payload = {"username": "newbie", "password": "pw", "role": "approver"}
    assert api("staff").post("/api/v1/auth/users", json=payload).status_code == 403

    resp = api("admin").post("/api/v1/auth/users", json=payload)
    assert resp.status_code == 201
    assert resp.json()["role"] == "approver"
    assert api("admin").post("/api/v1/auth/users", json=payload).status_code == 400
    assert api("admin").post("/api/v1/auth/users", json={**payload, "username": "x", "role": "owner"}).status_code == 400


def test_token_roundtrip():
    token = auth_service.create_access_token(42, "someone")
    payload = auth_service.decode_token(token)
    assert payload["sub"] == "42"
    assert payload["username"] == "someone"
    assert auth_service.decode_token(token + "x") is None


def test_default_admin_is_created_once(db):
    auth_service.ensure_default_admin(db)
    auth_service.ensure_default_admin(db)

    admins = db.query(User).all()
    assert [(u.username, u.role) for u in admins] == [(settings.DEFAULT_ADMIN_USERNAME, "admin")]
    assert auth_service.authenticate(db, settings.DEFAULT_ADMIN_USERNAME, settings.DEFAULT_ADMIN_PASSWORD)


def test_cookie_lifetime_follows_token_expiry(api, db, monkeypatch):
    monkeypatch.setattr(settings, "ACCESS_TOKEN_EXPIRE_HOURS", 2)
    auth_service.create_user(db, "clerk", "s3cret")
    db.commit()

    resp = api(None).post("/api/v1/auth/login", json={"username": "clerk", "password": "s3cret"})

    assert "Max-Age=7200" in resp.headers["set-cookie"]
    payload = auth_service.decode_token(resp.json()["token"])
    assert abs(payload["exp"] - (datetime.now(timezone.utc).timestamp() + 7200)) < 60


def test_create_user_is_staged_until_commit(db):
    user = auth_service.create_user(db, "temp", "pw", role="approver")
    assert user.id is not None
    assert user.role == UserRole.APPROVER
    db.rollback()

    assert db.execute(select(User).where(User.username == "temp")).scalar_one_or_none() is None


def test_unknown_role_is_refused(db):
    with pytest.raises(ValueError, match="Unknown role 'owner'"):
        auth_service.create_user(db, "x", "pw", role="owner")


def test_login_and_user_creation_are_logged(api, db, users):
    admin = api("admin")
    admin.post("/api/v1/auth/users", json={"username": "newbie", "password": "pw"})
    auth_service.create_user(db, "clerk", "s3cret")
    db.commit()
    api(None).post("/api/v1/auth/login", json={"username": "clerk", "password": "s3cret"})

    feed = admin.get("/api/v1/auth/activity").json()
    assert [(e["username"], e["action"]) for e in feed] == [("clerk", "login"), ("admin", "create_user")]
    assert api("staff").get("/api/v1/auth/activity").status_code == 403
