from jose import jwt

from auth import ALGORITHM, SECRET_KEY, verify_password
from conftest import register


def test_register_returns_token_and_profile(client):
    headers, user = register(client, email="Seeker@Example.com")

    assert user["email"] == "seeker@example.com"
    assert user["credits"] == 0
    assert user["firstName"] == "Jane"
    payload = jwt.decode(headers["Authorization"].split()[1], SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["sub"] == user["id"]


def test_duplicate_email_rejected(client):
    register(client)
    resp = client.post("/api/auth/register", json={
        "email": "seeker@example.com", "password": "another-pass", "firstName": "J", "lastName": "D",
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "User already exists with this email"


def test_short_password_rejected(client):
    resp = client.post("/api/auth/register", json={
        "email": "a@example.com", "password": "short", "firstName": "A", "lastName": "B",
    })
    assert resp.status_code == 422


def test_login(client):
    register(client)
    resp = client.post("/api/auth/login", json={"email": "seeker@example.com", "password": "moonlight99"})
    assert resp.status_code == 200
    assert resp.json()["token"]


def test_login_bad_password(client):
    register(client)
    resp = client.post("/api/auth/login", json={"email": "seeker@example.com", "password": "wrong-one"})
    assert resp.status_code == 401


def test_me_with_and_without_token(client, auth):
    headers, user = auth
    assert client.get("/api/auth/me").json() == {"user": None}
    assert client.get("/api/auth/me", headers=headers).json()["user"]["id"] == user["id"]


def test_garbage_token_treated_as_anonymous(client):
    headers = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/auth/me", headers=headers).json() == {"user": None}
    assert client.get("/api/analyses", headers=headers).status_code == 401


def test_logout(client):
    assert client.post("/api/auth/logout").json() == {"message": "Logged out successfully"}


def test_password_is_hashed(db, auth):
    from user_db import User

    _, user = auth
    row = db.get(User, user["id"])
    assert row.hashed_password != "moonlight99"
    assert verify_password("moonlight99", row.hashed_password)


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["services"]["payments"] == "offline"
    assert body["services"]["gemini"] == "not_configured"
