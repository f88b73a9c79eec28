import jwt
import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, login_headers, register
from coffee_shop import auth
from coffee_shop.config import settings
from coffee_shop.exceptions import CoffeeShopException
from coffee_shop.services.account import initialize_data


def test_register_login_and_profile(client):
    user = register(client, "Bob@Example.com")
    assert user["email"] == "bob@example.com"
    assert user["role_name"] == "ROLE_USER"
    assert user["status"] == "ACTIVE"

    r = client.post("/auth/login", json={"email": "bob@example.com", "password": "secret123"})
    assert r.status_code == 200
    body = r.json()
    assert body["resp_code"] == "000"
    assert body["resp_desc"] == "Success"
    tokens = body["data"]
    assert tokens["expires_in"] == settings.JWT_EXPIRE_SECONDS
    assert tokens["refresh_expires_in"] == settings.JWT_REFRESH_EXPIRE_SECONDS

    me = client.get("/auth/profile", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "bob@example.com"
    assert "X-Request-ID" in me.headers


@pytest.mark.parametrize("payload", [
    {"email": "", "password": "x", "confirm_password": "x"},
    {"email": "a@b.c", "password": None, "confirm_password": "x"},
    {"email": "a@b.c", "password": "x", "confirm_password": " "},
])
def test_register_requires_all_fields(client, payload):
    r = client.post("/auth/register", json=payload)
    assert r.status_code == 400
    assert r.json()["resp_code"] == "001"


def test_register_rejects_duplicate_and_mismatch(client):
    register(client, "carol@example.com")
    dup = client.post("/auth/register", json={"email": "carol@example.com", "password": "a", "confirm_password": "a"})
    assert dup.status_code == 409
    assert dup.json()["resp_code"] == "004"

    mismatch = client.post("/auth/register", json={"email": "dave@example.com", "password": "a", "confirm_password": "b"})
    assert mismatch.status_code == 400
    assert mismatch.json()["resp_code"] == "002"


def test_login_failures(client):
    register(client, "erin@example.com")
    missing = client.post("/auth/login", json={"email": "erin@example.com"})
    assert missing.json()["resp_code"] == "001"

    unknown = client.post("/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert unknown.status_code == 404
    assert unknown.json()["resp_code"] == "003"

    wrong = client.post("/auth/login", json={"email": "erin@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["data"] == "Email or password is incorrect"


def test_banned_user_cannot_login_or_use_token(client, admin_headers):
    user = register(client, "frank@example.com")
    headers = login_headers(client, "frank@example.com", "secret123")
    assert client.put(f"/users/{user['id']}/ban", headers=admin_headers).status_code == 200

    r = client.post("/auth/login", json={"email": "frank@example.com", "password": "secret123"})
    assert r.status_code == 403
    assert client.get("/auth/profile", headers=headers).status_code == 403


def test_refresh_token_flow(client):
    register(client, "gina@example.com")
    tokens = client.post("/auth/login", json={"email": "gina@example.com", "password": "secret123"}).json()["data"]

    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    assert r.json()["data"]["access_token"]

    # an access token is not accepted as a refresh token and vice versa
    bad = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert bad.status_code == 401
    wrong_kind = client.get("/auth/profile", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert wrong_kind.status_code == 401


def test_change_password(client, user_headers):
    r = client.post("/auth/change-password", json={
        "old_password": "wrong", "new_password": "n1", "confirm_password": "n1",
    }, headers=user_headers)
    assert r.json()["resp_code"] == "002"

    r = client.post("/auth/change-password", json={
        "old_password": "secret123", "new_password": "n1", "confirm_password": "n2",
    }, headers=user_headers)
    assert r.json()["resp_code"] == "002"

    r = client.post("/auth/change-password", json={
        "old_password": "secret123", "new_password": "n1", "confirm_password": "n1",
    }, headers=user_headers)
    assert r.status_code == 200
    login_headers(client, "alice@example.com", "n1")


def test_missing_or_garbage_token_is_unauthorized(client):
    assert client.get("/auth/profile").status_code == 401
    r = client.get("/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["resp_code"] == "401"


def test_token_provider_round_trip_and_expiry():
    token = auth.generate_access_token("someone@example.com")
    assert auth.get_username(token) == "someone@example.com"

    expired = jwt.encode({"sub": "x@example.com", "type": "access", "exp": 1}, settings.JWT_SECRET,
                         algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(CoffeeShopException) as exc:
        auth.validate_token(expired)
    assert exc.value.message == "Expired JWT token"

    with pytest.raises(CoffeeShopException):
        auth.validate_token("")


def test_admin_is_seeded_once(client, db_session):
    from coffee_shop.services.account import initialize_data
    from coffee_shop import repositories

    initialize_data(db_session)
    initialize_data(db_session)
    users = [u for u in repositories.UserRepository(db_session).list_all() if u.email == ADMIN_EMAIL]
    assert len(users) == 1
    assert len(repositories.RoleRepository(db_session).list_all()) == 2
    login_headers(client, ADMIN_EMAIL, ADMIN_PASSWORD)


def test_non_admin_is_forbidden_on_admin_routes(client, user_headers):
    r = client.get("/users", headers=user_headers)
    assert r.status_code == 403
    assert r.json()["resp_code"] == "403"


def test_login_rate_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT_PER_MIN", 2)
    for _ in range(2):
        client.post("/auth/login", json={"email": "x@example.com", "password": "x"})
    r = client.post("/auth/login", json={"email": "x@example.com", "password": "x"})
    assert r.status_code == 429
    assert "Retry-After" in r.headers
    body = r.json()
    assert body["resp_code"] == "002"
    assert body["data"].startswith("rate limit exceeded")


def test_admin_email_is_stored_lowercase(client, db_session, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", " Boss@Example.COM ")
    initialize_data(db_session)
    login_headers(client, "boss@example.com", ADMIN_PASSWORD)


def test_timestamps_are_serialized_as_utc(client, user_headers):
    profile = client.get("/auth/profile", headers=user_headers).json()["data"]
    assert profile["created_at"].endswith("+00:00")
