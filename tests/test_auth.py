from datetime import datetime, timedelta, timezone

from storefront_service import accounts, models
from storefront_service.auth import SESSION_COOKIE, create_session_token, resolve_session

from .conftest import PASSWORD


def test_register_starts_a_session(client) -> None:
    response = client.post(
        "/auth/register",
        json={"name": "New Shopper", "email": "New@Example.com", "password": "s3cret-pass"},
    )

    assert response.status_code == 201
    assert response.json()["user"]["email"] == "new@example.com"
    assert SESSION_COOKIE in response.cookies
    assert client.get("/auth/session").json()["user"]["name"] == "New Shopper"


def test_register_duplicate_email(client, user) -> None:
    response = client.post(
        "/auth/register",
        json={"name": "Copy Cat", "email": user.email.upper(), "password": "another-pass"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


def test_login_failures_are_generic(client, user) -> None:
    wrong_password = client.post("/auth/login", json={"email": user.email, "password": "not-it"})
    unknown_user = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"detail": "Invalid credentials"}


def test_logout_ends_session(auth_client) -> None:
    assert auth_client.get("/auth/session").json()["user"] is not None

    auth_client.post("/auth/logout")

    assert auth_client.get("/auth/session").json() == {"user": None}


def test_tampered_session_token_is_ignored(user) -> None:
    token = create_session_token(user)

    assert resolve_session(token).user_id == user.id
    assert resolve_session(token[:-2] + "xx") is None
    assert resolve_session(None) is None


def test_reset_request_does_not_reveal_accounts(client, user) -> None:
    known = client.post("/auth/password/reset-request", json={"email": user.email})
    unknown = client.post("/auth/password/reset-request", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json() == {"success": True}


def test_password_reset_flow(client, db, user) -> None:
    token = accounts.request_password_reset(db, user.email)

    response = client.post(
        "/auth/password/reset",
        json={"email": user.email, "token": token, "new_password": "brand-new-pass"},
    )

    assert response.status_code == 200
    assert client.post("/auth/login", json={"email": user.email, "password": "brand-new-pass"}).status_code == 200
    assert client.post("/auth/login", json={"email": user.email, "password": PASSWORD}).status_code == 401

    reused = client.post(
        "/auth/password/reset",
        json={"email": user.email, "token": token, "new_password": "third-pass-1"},
    )
    assert reused.status_code == 400


def test_password_reset_with_expired_token(client, db, user) -> None:
    token = accounts.request_password_reset(db, user.email)
    reset = db.query(models.PasswordResetToken).filter(models.PasswordResetToken.user_id == user.id).one()
    reset.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    response = client.post(
        "/auth/password/reset",
        json={"email": user.email, "token": token, "new_password": "brand-new-pass"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Token expired"


def test_password_reset_with_wrong_token(client, db, user) -> None:
    accounts.request_password_reset(db, user.email)

    response = client.post(
        "/auth/password/reset",
        json={"email": user.email, "token": "0123456789abcdef", "new_password": "brand-new-pass"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid token"


def test_update_profile(auth_client) -> None:
    response = auth_client.patch("/account/profile", json={"name": "Renamed Shopper"})

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Renamed Shopper"
    assert auth_client.get("/auth/session").json()["user"]["name"] == "Renamed Shopper"


def test_profile_requires_session(client) -> None:
    assert client.patch("/account/profile", json={"name": "Nobody Here"}).status_code == 401
