from datetime import timedelta

from fastapi import status

from app import crud
from app.auth import seed_admin
from app.core import Settings, get_settings
from app.models import Role
from app.security import get_password_hash, verify_password

from conftest import auth_header, create_user, login


def test_password_hashing_roundtrip():
    password = "secret123"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password("wrong-password", hashed)


def test_identical_passwords_get_distinct_hashes(db_session):
    first = create_user(db_session, email="first@example.com", password="same-pass")
    second = create_user(db_session, email="second@example.com", password="same-pass")
    assert first.hashed_password != "same-pass"
    assert first.hashed_password != second.hashed_password


def test_register_then_login(client):
    response = client.post(
        "/auth/register",
        json={
            "username": "alice",
            "email": "alice@example.com",
            "password": "secret1",
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["role"] == "user"
    assert "password" not in body["user"]
    assert "hashedPassword" not in body["user"]

    login_resp = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "secret1"}
    )
    assert login_resp.status_code == status.HTTP_200_OK
    data = login_resp.json()
    assert data["user"]["email"] == "alice@example.com"
    assert data["user"]["role"] == "user"


def test_register_duplicate_email_is_case_insensitive(client, db_session):
    create_user(db_session, email="dupe@example.com")
    response = client.post(
        "/auth/register",
        json={"username": "other", "email": "DUPE@Example.com", "password": "secret1"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {
        "success": False,
        "message": "User already exists with this email",
    }


def test_register_duplicate_username(client, db_session):
    create_user(db_session, email="taken@example.com", username="taken")
    response = client.post(
        "/auth/register",
        json={"username": "taken", "email": "new@example.com", "password": "secret1"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "username" in response.json()["message"]


def test_register_weak_password(client):
    response = client.post(
        "/auth/register",
        json={"username": "weakling", "email": "weak@example.com", "password": "12345"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False
    assert "6 characters" in response.json()["message"]


def test_register_rejects_short_username(client):
    response = client.post(
        "/auth/register",
        json={"username": "ab", "email": "short@example.com", "password": "secret1"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "Username" in response.json()["message"]


def test_register_with_admin_role(client, db_session):
    response = client.post(
        "/auth/register",
        json={
            "username": "chief",
            "email": "chief@example.com",
            "password": "secret1",
            "role": "admin",
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["user"]["role"] == "admin"
    assert crud.get_user_by_email(db_session, "chief@example.com").role == Role.ADMIN

    unknown = client.post(
        "/auth/register",
        json={
            "username": "rooty",
            "email": "rooty@example.com",
            "password": "secret1",
            "role": "root",
        },
    )
    assert unknown.status_code == status.HTTP_400_BAD_REQUEST


def test_login_with_wrong_password(client, db_session):
    create_user(db_session, email="wrong@example.com")
    response = client.post(
        "/auth/login", json={"email": "wrong@example.com", "password": "nope123"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Invalid email or password"}


def test_login_unknown_email(client):
    response = client.post(
        "/auth/login", json={"email": "ghost@example.com", "password": "secret123"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_five_failures_lock_the_identity(client, db_session, services):
    create_user(db_session, email="locked@example.com")
    for _ in range(5):
        response = client.post(
            "/auth/login", json={"email": "locked@example.com", "password": "bad-pass"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    response = client.post(
        "/auth/login", json={"email": "locked@example.com", "password": "secret123"}
    )
    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert response.json()["success"] is False
    retry_after = int(response.headers["retry-after"])
    assert 0 < retry_after <= 15 * 60
    assert services.throttle.is_locked("locked@example.com")


def test_successful_login_clears_failures(client, db_session, services):
    create_user(db_session, email="recover@example.com")
    for _ in range(4):
        client.post(
            "/auth/login", json={"email": "recover@example.com", "password": "bad-pass"}
        )
    login(client, "recover@example.com")
    assert len(services.throttle) == 0

    response = client.post(
        "/auth/login", json={"email": "recover@example.com", "password": "bad-pass"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert not services.throttle.is_locked("recover@example.com")


def test_logout_revokes_only_the_presented_token(client, db_session):
    create_user(db_session, email="logout@example.com")
    first = login(client, "logout@example.com")
    second = login(client, "logout@example.com")
    assert first != second

    response = client.post("/auth/logout", headers=auth_header(first))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True

    revoked = client.get("/users/me", headers=auth_header(first))
    assert revoked.status_code == status.HTTP_401_UNAUTHORIZED
    assert revoked.json()["message"] == "Token revoked"

    still_valid = client.get("/users/me", headers=auth_header(second))
    assert still_valid.status_code == status.HTTP_200_OK


def test_logout_accepts_expired_and_revoked_tokens(client, db_session, services):
    user = create_user(db_session, email="late@example.com")
    expired = services.issuer.issue(user.id, Role.USER, ttl=timedelta(0))
    response = client.post("/auth/logout", headers=auth_header(expired))
    assert response.status_code == status.HTTP_200_OK

    token = login(client, "late@example.com")
    assert client.post("/auth/logout", headers=auth_header(token)).status_code == 200
    assert client.post("/auth/logout", headers=auth_header(token)).status_code == 200

    forged = client.post("/auth/logout", headers=auth_header("not-a-token"))
    assert forged.status_code == status.HTTP_401_UNAUTHORIZED
    missing = client.post("/auth/logout")
    assert missing.status_code == status.HTTP_401_UNAUTHORIZED


def test_requests_without_token_are_unauthenticated(client):
    response = client.get("/contacts/mine")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {
        "success": False,
        "message": "Authentication token missing",
    }

    garbage = client.get("/contacts/mine", headers=auth_header("not-a-token"))
    assert garbage.status_code == status.HTTP_401_UNAUTHORIZED
    assert garbage.json()["message"] == "Invalid authentication token"


def test_seeded_admin_logs_in_with_admin_role(client, db_session):
    settings = Settings(ADMIN_EMAIL="boss@example.com", ADMIN_PASSWORD="admin-pass")
    admin = seed_admin(db_session, settings)
    assert admin.role is Role.ADMIN

    # Seeding again keeps the same account.
    assert seed_admin(db_session, settings).id == admin.id

    response = client.post(
        "/auth/login", json={"email": "boss@example.com", "password": "admin-pass"}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["user"]["role"] == "admin"


def test_seed_admin_without_credentials_is_skipped(db_session):
    assert seed_admin(db_session, Settings(ADMIN_EMAIL=None)) is None


def test_seed_over_registered_email_sets_configured_password(client, db_session):
    create_user(db_session, email="boss@example.com", password="mallory1")
    settings = Settings(ADMIN_EMAIL="boss@example.com", ADMIN_PASSWORD="admin-pass")

    admin = seed_admin(db_session, settings)
    assert admin.role is Role.ADMIN

    stale = client.post(
        "/auth/login", json={"email": "boss@example.com", "password": "mallory1"}
    )
    assert stale.status_code == status.HTTP_401_UNAUTHORIZED
    token = login(client, "boss@example.com", "admin-pass")
    assert client.get("/contacts", headers=auth_header(token)).status_code == 200


def test_create_admin_requires_the_secret_key(client, db_session):
    configured = Settings(
        ADMIN_EMAIL="root@example.com",
        ADMIN_PASSWORD="root-pass",
        ADMIN_SECRET_KEY="let-me-in",
    )
    client.app.dependency_overrides[get_settings] = lambda: configured

    denied = client.post("/auth/create-admin", json={"secretKey": "guess"})
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    created = client.post("/auth/create-admin", json={"secretKey": "let-me-in"})
    assert created.status_code == status.HTTP_200_OK
    assert created.json()["user"]["role"] == "admin"
    assert created.json()["message"] == "Admin created successfully"

    updated = client.post("/auth/create-admin", json={"secretKey": "let-me-in"})
    assert updated.json()["message"] == "Admin updated successfully"
    login(client, "root@example.com", "root-pass")
