"""FastAPI dependencies for FitPantry API.

Provides:
- Database session dependency
- Current user resolution (Authorization: Bearer <token>)
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .auth import parse_bearer, resolve_user
from .db import get_db
from .errors import AuthError
from .models import User


def get_current_user_optional(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> Optional[User]:
    return resolve_user(db, parse_bearer(authorization))


def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Authenticated user or 401.

    No header, a malformed header, an expired token and a deleted user all
    produce the same AuthError.
    """
    if user is None:
        raise AuthError()
    return user


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    return parse_bearer(authorization)
