"""Registration, password checks and bearer sessions.

Sessions are opaque random tokens kept in Redis with a TTL. The rest of the
app only ever sees "current user" or AuthError.
"""

import logging
import re
import secrets
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import AuthError, ConflictError, ValidationError
from .infra.redis_client import get_sync_redis
from .models import User
from .settings import settings

logger = logging.getLogger("fitpantry.auth")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def password_problems(password: str) -> list[str]:
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    return errors


def register_user(db: Session, email: str, password: str, confirm_password: str) -> User:
    if not email or not password or not confirm_password:
        raise ValidationError("Email, password, and password confirmation are required")
    if not validate_email(email):
        raise ValidationError("Please enter a valid email address", field="email")
    problems = password_problems(password)
    if problems:
        raise ValidationError(", ".join(problems), field="password")
    if password != confirm_password:
        raise ValidationError("Passwords do not match", field="confirmPassword")

    email = email.lower().strip()
    if db.scalar(select(User).where(User.email == email)):
        raise ConflictError("An account with this email already exists")

    user = User(email=email, password_hash=pwd_context.hash(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("An account with this email already exists")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.scalar(select(User).where(User.email == (email or "").lower().strip()))
    if user is None or not user.password_hash or not pwd_context.verify(password or "", user.password_hash):
        raise AuthError()
    return user


# --- Sessions ---

def _session_key(token: str) -> str:
    return f"fitpantry:session:{token}"


def create_session(user_id: str) -> str:
    token = secrets.token_urlsafe(32)
    get_sync_redis().set(_session_key(token), user_id, ex=settings.session_ttl_seconds)
    return token


def revoke_session(token: str) -> None:
    get_sync_redis().delete(_session_key(token))


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


def resolve_user(db: Session, token: Optional[str]) -> Optional[User]:
    """User for a session token, or None for any missing/unknown/expired token."""
    if not token:
        return None
    user_id = get_sync_redis().get(_session_key(token))
    if not user_id:
        return None
    return db.get(User, user_id)
