import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Cookie, Depends, HTTPException, Response, status
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .database import get_db

logger = logging.getLogger(__name__)

SESSION_COOKIE = "storefront_session"
JWT_ALGORITHM = "HS256"


class SessionPayload(BaseModel):
    user_id: int
    email: str
    name: str


class AuthenticatedUser(BaseModel):
    id: int
    email: str
    name: str


def hash_secret(secret: str) -> str:
    """Salted PBKDF2-SHA256 hash encoded as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""
    iterations = get_settings().PASSWORD_HASH_ITERATIONS
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_secret(secret: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def create_session_token(user: models.User) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(seconds=settings.SESSION_TTL_SECONDS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def resolve_session(token: str | None) -> SessionPayload | None:
    """Decode a session token; anything invalid or expired resolves to no session."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, get_settings().SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.debug("Ignoring invalid session token: %s", e)
        return None
    if payload.get("user_id") is None:
        return None
    return SessionPayload(user_id=payload["user_id"], email=payload.get("email", ""), name=payload.get("name", ""))


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/")


def get_optional_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    db: Session = Depends(get_db),  # noqa: B008
) -> AuthenticatedUser | None:
    session = resolve_session(session_token)
    if session is None:
        return None
    user = db.get(models.User, session.user_id)
    if user is None:
        return None
    return AuthenticatedUser(id=user.id, email=user.email, name=user.name)


def get_current_user(
    user: AuthenticatedUser | None = Depends(get_optional_user),  # noqa: B008
) -> AuthenticatedUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user
