# Account tests: signup roles, owner profile provisioning, login and token checks.
from __future__ import annotations

from fastapi.testclient import TestClient

from estatehub.db import SessionLocal
from estatehub import models


# Convenience header for authenticated requests
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_owner_signup_creates_profile(client: TestClient):
    r = client.post(
        "/auth/signup",
        json={"email": " Owner@Example.com ", "password": "changeme123", "name": "Olive", "phone": "555-0100", "role": "owner"},
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "owner@example.com"
    assert data["user"]["role"] == "owner"

    db = SessionLocal()
    try:
        profile = db.query(models.OwnerProfile).filter(models.OwnerProfile.user_id == data["user"]["id"]).first()
        assert profile is not None
        assert profile.phone == "555-0100"
    finally:
        db.close()


def test_buyer_signup_has_no_profile_and_defaults_role(client: TestClient):
    r = client.post("/auth/signup", json={"email": "buyer@example.com", "password": "changeme123"})
    assert r.status_code == 201, r.text
    user = r.json()["user"]
    assert user["role"] == "buyer"

    db = SessionLocal()
    try:
        assert db.query(models.OwnerProfile).count() == 0
    finally:
        db.close()


def test_admin_cannot_self_register(client: TestClient):
    r = client.post("/auth/signup", json={"email": "root@example.com", "password": "changeme123", "role": "admin"})
    assert r.status_code == 422, r.text


def test_duplicate_email_conflicts(client: TestClient):
    body = {"email": "dup@example.com", "password": "changeme123", "role": "renter"}
    assert client.post("/auth/signup", json=body).status_code == 201
    assert client.post("/auth/signup", json=body).status_code == 409


def test_login_and_me(client: TestClient):
    client.post("/auth/signup", json={"email": "renter@example.com", "password": "changeme123", "role": "renter"})

    r = client.post("/auth/login", json={"email": "renter@example.com", "password": "wrongpass1"})
    assert r.status_code == 401

    r = client.post("/auth/login", json={"email": "renter@example.com", "password": "changeme123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    r = client.get("/auth/me", headers=auth_headers(token))
    assert r.status_code == 200
    assert r.json()["role"] == "renter"

    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers=auth_headers("not-a-jwt")).status_code == 401


def test_healthz(client: TestClient):
    assert client.get("/healthz").json() == {"status": "ok"}
