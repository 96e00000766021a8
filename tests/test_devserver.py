from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from eventboard.devserver import InMemoryBackend, create_app
from eventboard.security import TokenRegistry, password_context

from conftest import USER_EMAIL, USER_PASSWORD


def _client() -> TestClient:
    return TestClient(create_app(backend=InMemoryBackend(password_rounds=1_000), tokens=TokenRegistry()))


def _signup(client: TestClient, email: str = USER_EMAIL) -> dict:
    response = client.post(
        "/users/register",
        json={"name": "Ada", "email": email, "password": USER_PASSWORD, "confirmPassword": USER_PASSWORD},
    )
    assert response.status_code == 201
    return response.json()


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _create(client: TestClient, token: str, title: str, max_participants: int = 5) -> dict:
    response = client.post(
        "/events/create",
        json={
            "title": title,
            "description": "",
            "date": "2099-06-01",
            "location": "Hall A",
            "maxParticipants": max_participants,
        },
        headers=_auth(token),
    )
    assert response.status_code == 201
    return response.json()


def test_password_context_uses_pbkdf2() -> None:
    context = password_context(rounds=1_000)
    hashed = context.hash("secret1")

    assert hashed.startswith("$pbkdf2-sha256$1000$")
    assert context.verify("secret1", hashed)
    assert not context.verify("secret2", hashed)


def test_stored_passwords_are_not_plain_text() -> None:
    backend = InMemoryBackend(password_rounds=1_000)
    user = backend.create_user("Ada", USER_EMAIL, USER_PASSWORD)

    assert user.password_hash != USER_PASSWORD
    assert backend.authenticate(USER_EMAIL, USER_PASSWORD) == user
    assert backend.authenticate(USER_EMAIL, "wrong-password") is None


def test_register_then_login() -> None:
    with _client() as client:
        registered = _signup(client)
        assert registered["user"]["email"] == USER_EMAIL

        login = client.post("/users/login", json={"email": "A@B.com", "password": USER_PASSWORD})
        assert login.status_code == 200
        assert login.json()["user"]["_id"] == registered["user"]["_id"]
        assert login.json()["token"]

        wrong = client.post("/users/login", json={"email": USER_EMAIL, "password": "nope-nope"})
        assert wrong.status_code == 401
        assert wrong.json() == {"detail": "Invalid email or password"}


def test_register_rejects_duplicates_and_mismatch() -> None:
    with _client() as client:
        _signup(client)
        duplicate = client.post(
            "/users/register",
            json={"name": "Ada", "email": USER_EMAIL, "password": USER_PASSWORD, "confirmPassword": USER_PASSWORD},
        )
        mismatch = client.post(
            "/users/register",
            json={"name": "Bob", "email": "bob@b.com", "password": USER_PASSWORD, "confirmPassword": "other1"},
        )

    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "A user with this email already exists"
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "Passwords do not match"


def test_protected_routes_require_token() -> None:
    with _client() as client:
        missing = client.get("/events")
        invalid = client.get("/events", headers=_auth("bogus"))

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Missing bearer token"
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid or expired token"


def test_listing_paginates_and_searches() -> None:
    with _client() as client:
        token = _signup(client)["token"]
        for index in range(1, 13):
            _create(client, token, f"Talk {index}")
        _create(client, token, "Conference dinner")

        first = client.get("/events", params={"page": 1, "limit": 5}, headers=_auth(token)).json()
        last = client.get("/events", params={"page": 3, "limit": 5}, headers=_auth(token)).json()
        found = client.get("/events", params={"search": "CONF"}, headers=_auth(token)).json()
        too_big = client.get("/events", params={"limit": 500}, headers=_auth(token))

    assert first["totalPages"] == 3
    assert [event["title"] for event in first["events"]] == [f"Talk {index}" for index in range(1, 6)]
    assert [event["title"] for event in last["events"]] == ["Talk 11", "Talk 12", "Conference dinner"]
    assert [event["title"] for event in found["events"]] == ["Conference dinner"]
    assert too_big.status_code == 422


def test_create_rejects_past_date_and_records_creator() -> None:
    with _client() as client:
        registered = _signup(client)
        token = registered["token"]
        past = client.post(
            "/events/create",
            json={"title": "Old", "date": "2000-01-01", "location": "Hall", "maxParticipants": 3},
            headers=_auth(token),
        )
        created = _create(client, token, "New")

    assert past.status_code == 400
    assert past.json()["detail"] == "Date must be in the future"
    assert created["createdBy"] == registered["user"]["_id"]
    assert created["registeredUsers"] == []


def test_registration_rules_and_member_listing() -> None:
    with _client() as client:
        ada = _signup(client)
        bob = _signup(client, "bob@b.com")
        carol = _signup(client, "carol@b.com")
        event = _create(client, ada["token"], "Small room", max_participants=2)
        path = f"/events/{event['_id']}/register"

        first = client.post(path, json={"userId": ada["user"]["_id"]}, headers=_auth(ada["token"]))
        again = client.post(path, json={"userId": ada["user"]["_id"]}, headers=_auth(ada["token"]))
        other = client.post(path, json={"userId": ada["user"]["_id"]}, headers=_auth(bob["token"]))
        second = client.post(path, json={}, headers=_auth(bob["token"]))
        full = client.post(path, json={}, headers=_auth(carol["token"]))
        missing = client.post("/events/unknown/register", json={}, headers=_auth(carol["token"]))
        members = client.get(f"/events/{event['_id']}/registered-users", headers=_auth(carol["token"]))

    assert first.json() == {"message": "Registered for Small room"}
    assert again.status_code == 400
    assert again.json()["detail"] == "You are already registered for this event"
    assert other.status_code == 403
    assert second.status_code == 200
    assert full.status_code == 400
    assert full.json()["detail"] == "This event is full"
    assert missing.status_code == 404
    assert [user["email"] for user in members.json()["users"]] == [USER_EMAIL, "bob@b.com"]


def test_token_registry_revocation() -> None:
    registry = TokenRegistry()
    token = registry.issue("user-1")

    assert registry.resolve(token) == "user-1"
    registry.revoke(token)
    assert registry.resolve(token) is None


def test_tokens_expire_after_fixed_lifetime() -> None:
    now = [datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)]
    registry = TokenRegistry(timedelta(minutes=30), clock=lambda: now[0])
    token = registry.issue("user-1")

    now[0] += timedelta(minutes=20)
    assert registry.resolve(token) == "user-1"
    now[0] += timedelta(minutes=10)
    assert registry.resolve(token) is None

    registry.issue("user-2")
    assert len(registry) == 1


def test_expired_token_is_rejected_by_routes() -> None:
    now = [datetime.now(timezone.utc)]
    tokens = TokenRegistry(timedelta(minutes=5), clock=lambda: now[0])
    app = create_app(backend=InMemoryBackend(password_rounds=1_000), tokens=tokens)

    with TestClient(app) as client:
        token = _signup(client)["token"]
        assert client.get("/events", headers=_auth(token)).status_code == 200
        now[0] += timedelta(minutes=6)
        response = client.get("/events", headers=_auth(token))

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"
    assert response.headers["www-authenticate"] == "Bearer"
