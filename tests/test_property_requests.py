# Transaction workflow test suite: buy/rent requests, owner responses, cancellation,
# racing responders, and notification failures that must not undo a transition.
from __future__ import annotations

from contextlib import contextmanager
from typing import Tuple

import pytest
from fastapi.testclient import TestClient

from estatehub.db import SessionLocal
from estatehub.errors import ConflictError
from estatehub.lifecycle import ListingLifecycle
from estatehub.notifications import get_notification_sink
from estatehub.routes.auth import create_access_token, hash_password
from estatehub.stores import RequestStore
from estatehub.workflow import TransactionWorkflow
from estatehub import locks, models, schemas


# Helper: create a user and return (access_token, user JSON)
def signup(client: TestClient, email: str, password: str, role: str | None = None, name: str = "") -> Tuple[str, dict]:
    payload = {"email": email, "password": password, "name": name}
    if role:
        payload["role"] = role
    r = client.post("/auth/signup", json=payload)
    assert r.status_code == 201, r.text
    data = r.json()
    return data["access_token"], data["user"]


# Helper: admins cannot self-register, so insert one directly and mint a token
def create_admin(email: str = "admin@example.com") -> Tuple[str, int]:
    db = SessionLocal()
    try:
        user = models.User(email=email, password_hash=hash_password("changeme123"), name="Admin", role="admin")
        db.add(user)
        db.commit()
        db.refresh(user)
        return create_access_token(user=user), user.id
    finally:
        db.close()


# Convenience header for authenticated requests
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# Helper: submit and approve a listing so requests can be raised against it
def create_listing(client: TestClient, owner_token: str, admin_token: str, listing_type: str = "sale", approved: bool = True) -> dict:
    r = client.post(
        "/api/v1/properties",
        headers=auth_headers(owner_token),
        json={
            "title": "Maple House" if listing_type == "sale" else "Harbor Flat",
            "description": "Three bedrooms near the park",
            "property_type": "house",
            "listing_type": listing_type,
            "price": 525000 if listing_type == "sale" else 2100,
            "location": {"address": {"street": "12 Maple Ave", "city": "Portland"}},
            "images": ["https://img.example.com/maple.jpg"],
        },
    )
    assert r.status_code == 201, r.text
    prop = r.json()
    if approved:
        r = client.put(
            f"/api/v1/admin/properties/{prop['id']}/approve",
            headers=auth_headers(admin_token),
            json={"action": "approve"},
        )
        assert r.status_code == 200, r.text
        prop = r.json()
    return prop


def create_request(client: TestClient, token: str, property_id: int, request_type: str = "buy", **extra) -> dict:
    """
    Helper: POST /property-requests and return {"status_code": number, "data": JSON}.
    """
    payload = {"property_id": property_id, "request_type": request_type, "message": "We love it", **extra}
    r = client.post("/api/v1/property-requests", headers=auth_headers(token), json=payload)
    return {"status_code": r.status_code, "data": r.json()}


def respond(client: TestClient, token: str, request_id: int, decision: str, message: str | None = None):
    body = {"status": decision}
    if message is not None:
        body["response_message"] = message
    return client.put(f"/api/v1/property-requests/{request_id}/status", headers=auth_headers(token), json=body)


def notification_kinds(client: TestClient, token: str) -> list:
    r = client.get("/api/v1/notifications", headers=auth_headers(token))
    assert r.status_code == 200, r.text
    return [n["kind"] for n in r.json()]


class FailingSink:
    def notify(self, recipient_id, kind, title, message, data):
        raise RuntimeError("notification backend down")


# Happy path: buyer offers, owner accepts, both sides are notified; the accepted request is final
def test_buy_request_accept_flow(client: TestClient):
    owner_token, owner = signup(client, "owner@example.com", "changeme123", "owner", name="Olive")
    buyer_token, buyer = signup(client, "buyer@example.com", "changeme123", "buyer", name="Ben")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)

    res = create_request(client, buyer_token, prop["id"], "buy", offer_amount=500000)
    assert res["status_code"] == 201, res["data"]
    req = res["data"]
    assert req["status"] == "pending"
    assert req["requester_id"] == buyer["id"]
    # owner_id on a request is the owner's account, not the profile the listing points at
    assert req["owner_id"] == owner["id"]
    assert req["offer_amount"] == 500000

    r = client.get("/api/v1/notifications", headers=auth_headers(owner_token))
    incoming = r.json()
    assert incoming[0]["kind"] == "property_request"
    assert incoming[0]["data"]["request_id"] == req["id"]
    assert "Ben" in incoming[0]["message"]

    r = respond(client, owner_token, req["id"], "accepted", "Let's talk")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"
    assert r.json()["response_message"] == "Let's talk"
    assert notification_kinds(client, buyer_token) == ["request_accepted"]

    r = client.put(f"/api/v1/property-requests/{req['id']}/cancel", headers=auth_headers(buyer_token))
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "invalid_transition"

    r = respond(client, owner_token, req["id"], "rejected")
    assert r.status_code == 409, r.text


def test_rent_request_reject_flow(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    renter_token, _ = signup(client, "renter@example.com", "changeme123", "renter")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token, listing_type="rent")

    res = create_request(client, renter_token, prop["id"], "rent", preferred_move_in_date="2026-12-01")
    assert res["status_code"] == 201, res["data"]
    assert res["data"]["preferred_move_in_date"] == "2026-12-01"

    r = respond(client, owner_token, res["data"]["id"], "rejected", "Already promised")
    assert r.status_code == 200, r.text
    assert notification_kinds(client, renter_token) == ["request_rejected"]


def test_only_the_listing_owner_responds(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    other_owner_token, _ = signup(client, "other@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    for token in (other_owner_token, buyer_token):
        r = respond(client, token, req["id"], "accepted")
        assert r.status_code == 403, r.text
        assert r.json()["error"] == "forbidden"

    r = client.get(f"/api/v1/property-requests/{req['id']}", headers=auth_headers(owner_token))
    assert r.json()["status"] == "pending"


def test_response_must_be_accept_or_reject(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    r = respond(client, owner_token, req["id"], "cancelled")
    assert r.status_code == 400, r.text
    assert r.json()["fields"] == ["status"]


def test_requester_cancels_pending_request(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    other_buyer_token, _ = signup(client, "buyer2@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    r = client.put(f"/api/v1/property-requests/{req['id']}/cancel", headers=auth_headers(other_buyer_token))
    assert r.status_code == 403, r.text

    r = client.put(f"/api/v1/property-requests/{req['id']}/cancel", headers=auth_headers(buyer_token))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"
    assert notification_kinds(client, owner_token) == ["request_cancelled", "property_request", "property_approved"]

    r = respond(client, owner_token, req["id"], "accepted")
    assert r.status_code == 409, r.text


# Creation rules: visible listing, matching listing type, type-specific fields, requester roles
def test_request_on_pending_listing_is_not_found(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token, approved=False)

    res = create_request(client, buyer_token, prop["id"])
    assert res["status_code"] == 404, res["data"]
    res = create_request(client, buyer_token, 9999)
    assert res["status_code"] == 404, res["data"]


def test_request_on_inactive_listing_is_not_found(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)

    r = client.put(
        f"/api/v1/owner/properties/{prop['id']}",
        headers=auth_headers(owner_token),
        json={"status": "inactive"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["property"]["status"] == "inactive"

    res = create_request(client, buyer_token, prop["id"])
    assert res["status_code"] == 404, res["data"]
    r = client.get("/api/v1/property-requests/user", headers=auth_headers(buyer_token))
    assert r.json() == []


def test_request_type_must_match_listing_type(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token, listing_type="rent")

    res = create_request(client, buyer_token, prop["id"], "buy")
    assert res["status_code"] == 400, res["data"]
    assert res["data"]["fields"] == ["request_type"]


def test_type_specific_fields(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    sale = create_listing(client, owner_token, admin_token, listing_type="sale")
    rent = create_listing(client, owner_token, admin_token, listing_type="rent")

    res = create_request(client, buyer_token, sale["id"], "buy", preferred_move_in_date="2026-12-01")
    assert res["status_code"] == 400, res["data"]
    res = create_request(client, buyer_token, rent["id"], "rent", offer_amount=1900)
    assert res["status_code"] == 400, res["data"]
    res = create_request(client, buyer_token, sale["id"], "buy", offer_amount=-5)
    assert res["status_code"] == 422, res["data"]


def test_owners_and_admins_do_not_raise_requests(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)

    assert create_request(client, owner_token, prop["id"])["status_code"] == 403
    assert create_request(client, admin_token, prop["id"])["status_code"] == 403


# Notifications are fire-and-forget: a failing sink never undoes the committed transition
def test_notification_failure_keeps_transition(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    client.app.dependency_overrides[get_notification_sink] = lambda: FailingSink()
    r = respond(client, owner_token, req["id"], "accepted")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"
    client.app.dependency_overrides.clear()

    r = client.get(f"/api/v1/property-requests/{req['id']}", headers=auth_headers(buyer_token))
    assert r.json()["status"] == "accepted"
    assert notification_kinds(client, buyer_token) == []


# Racing responders: exactly one conditional write wins
def test_concurrent_responses_have_one_winner(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    first = SessionLocal()
    second = SessionLocal()
    try:
        accept_view = RequestStore(first).get(req["id"])
        reject_view = RequestStore(second).get(req["id"])
        assert accept_view.status == reject_view.status == "pending"

        RequestStore(first).transition(accept_view, {"pending"}, status="accepted")
        first.commit()

        with pytest.raises(ConflictError):
            RequestStore(second).transition(reject_view, {"pending"}, status="rejected")
        second.rollback()
    finally:
        first.close()
        second.close()

    r = client.get(f"/api/v1/property-requests/{req['id']}", headers=auth_headers(owner_token))
    assert r.json()["status"] == "accepted"

    # A late HTTP responder reads the terminal state and is refused
    r = respond(client, owner_token, req["id"], "rejected")
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "invalid_transition"


# A request raised between the owner's pending-request check and the soft delete wins;
# the delete loses its conditional write and the listing survives with the request
def test_request_racing_delete_keeps_listing(client: TestClient, monkeypatch):
    owner_token, owner = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, buyer = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    sink = get_notification_sink()

    checked = RequestStore.has_pending_for_property

    def _check_then_request(self, property_id):
        found = checked(self, property_id)
        other = SessionLocal()
        try:
            TransactionWorkflow(other, sink).create_request(
                other.get(models.User, buyer["id"]),
                schemas.PropertyRequestCreate(property_id=property_id, request_type="buy", message="Still for sale?"),
            )
        finally:
            other.close()
        return found

    monkeypatch.setattr(RequestStore, "has_pending_for_property", _check_then_request)
    db = SessionLocal()
    try:
        with pytest.raises(ConflictError):
            ListingLifecycle(db, sink).delete_listing(db.get(models.User, owner["id"]), prop["id"])
    finally:
        db.close()
    monkeypatch.undo()

    assert client.get(f"/api/v1/properties/{prop['id']}").status_code == 200
    r = client.get("/api/v1/property-requests/owner", headers=auth_headers(owner_token))
    assert [x["status"] for x in r.json()] == ["pending"]

    # With the request visible, a retried delete is refused up front
    r = client.delete(f"/api/v1/owner/properties/{prop['id']}", headers=auth_headers(owner_token))
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "conflict"
    assert client.get("/api/v1/property-requests/user", headers=auth_headers(buyer_token)).json()[0]["property_id"] == prop["id"]


def test_held_lock_returns_busy(client: TestClient, monkeypatch):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    req = create_request(client, buyer_token, prop["id"])["data"]

    @contextmanager
    def _held(key, ttl_ms=locks.LOCK_TTL_MS):
        yield False

    monkeypatch.setattr(locks, "redis_try_lock", _held)
    r = respond(client, owner_token, req["id"], "accepted")
    assert r.status_code == 429, r.text
    assert r.json()["error"] == "busy"
    assert r.headers["Retry-After"] == "1"
    monkeypatch.undo()

    r = client.get(f"/api/v1/property-requests/{req['id']}", headers=auth_headers(owner_token))
    assert r.json()["status"] == "pending"


# Listings for both sides of the workflow
def test_owner_and_requester_listings(client: TestClient):
    owner_token, _ = signup(client, "owner@example.com", "changeme123", "owner")
    buyer_token, _ = signup(client, "buyer@example.com", "changeme123", "buyer")
    stranger_token, _ = signup(client, "stranger@example.com", "changeme123", "buyer")
    admin_token, _ = create_admin()
    prop = create_listing(client, owner_token, admin_token)
    first = create_request(client, buyer_token, prop["id"])["data"]
    second = create_request(client, buyer_token, prop["id"], message="Second thoughts")["data"]
    respond(client, owner_token, first["id"], "rejected")

    r = client.get("/api/v1/property-requests/owner", headers=auth_headers(owner_token))
    assert r.status_code == 200, r.text
    assert [x["id"] for x in r.json()] == [second["id"], first["id"]]

    r = client.get("/api/v1/property-requests/owner?status=pending", headers=auth_headers(owner_token))
    assert [x["id"] for x in r.json()] == [second["id"]]

    r = client.get("/api/v1/property-requests/user?status=rejected", headers=auth_headers(buyer_token))
    assert [x["id"] for x in r.json()] == [first["id"]]

    assert client.get("/api/v1/property-requests/owner", headers=auth_headers(buyer_token)).status_code == 403
    assert client.get(f"/api/v1/property-requests/{first['id']}", headers=auth_headers(stranger_token)).status_code == 403
    assert client.get(f"/api/v1/property-requests/{first['id']}", headers=auth_headers(admin_token)).status_code == 200
    assert client.get("/api/v1/property-requests/424242", headers=auth_headers(admin_token)).status_code == 404
