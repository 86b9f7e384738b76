import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schema
from .auth import hash_secret, verify_secret
from .errors import Conflict, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == _normalize_email(email)).first()


# --- COMMANDS (Write Operations) ---
def register_user(db: Session, data: schema.RegisterRequest) -> models.User:
    if get_user_by_email(db, data.email) is not None:
        msg = "Email already registered"
        raise Conflict(msg)

    user = models.User(
        email=_normalize_email(data.email),
        name=data.name,
        password_hash=hash_secret(data.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        msg = "Email already registered"
        raise Conflict(msg) from e
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, data: schema.LoginRequest) -> models.User:
    user = get_user_by_email(db, data.email)
    if user is None or not verify_secret(data.password, user.password_hash):
        msg = "Invalid credentials"
        raise Unauthorized(msg)
    return user


def request_password_reset(db: Session, email: str) -> str | None:
    """Issue a one-hour reset token, replacing any earlier one.

    Returns ``None`` for unknown emails; callers must answer identically in
    both cases so the endpoint cannot be used to probe for accounts.
    """
    user = get_user_by_email(db, email)
    if user is None:
        return None

    token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + RESET_TOKEN_TTL
    if user.reset_token is None:
        user.reset_token = models.PasswordResetToken(token_hash=hash_secret(token), expires_at=expires_at)
    else:
        user.reset_token.token_hash = hash_secret(token)
        user.reset_token.expires_at = expires_at
    db.commit()

    # No mail transport is wired up; the log is the delivery channel.
    logger.info("Password reset token for %s: %s", user.email, token)
    return token


def reset_password(db: Session, data: schema.PasswordReset) -> models.User:
    user = get_user_by_email(db, data.email)
    if user is None or user.reset_token is None:
        msg = "Invalid token"
        raise ValidationError(msg)

    expires_at = user.reset_token.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at < datetime.now(timezone.utc):
        msg = "Token expired"
        raise ValidationError(msg)
    if not verify_secret(data.token, user.reset_token.token_hash):
        msg = "Invalid token"
        raise ValidationError(msg)

    user.password_hash = hash_secret(data.new_password)
    db.delete(user.reset_token)
    db.commit()
    db.refresh(user)
    logger.info("Password reset for user %s", user.id)
    return user


def update_profile(db: Session, user_id: int, data: schema.ProfileUpdate) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise Unauthorized
    user.name = data.name
    db.commit()
    db.refresh(user)
    return user


# --- QUERIES (Read Operations) ---
def get_session_user(db: Session, user_id: int) -> schema.SessionUser | None:
    user = db.get(models.User, user_id)
    if user is None:
        return None
    addresses = sorted(user.addresses, key=lambda a: (not a.is_default, a.id))
    return schema.SessionUser(
        id=user.id,
        email=user.email,
        name=user.name,
        addresses=[schema.Address.model_validate(address) for address in addresses],
    )
