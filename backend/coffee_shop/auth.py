"""JWT token provider and FastAPI security dependencies.

Access and refresh tokens are HS256 JWTs whose subject is the user's
email; the `type` claim tells them apart so a refresh token cannot be
used as a bearer token. `get_current_user` validates the bearer token
and returns the corresponding `User` row; `require_admin` additionally
checks for `ROLE_ADMIN`.

Token problems raise `CoffeeShopException(UNAUTHORIZED)` so they are
rendered with the usual response envelope.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .constants import RespCode
from .database import get_session
from .exceptions import CoffeeShopException

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

bearer_scheme = HTTPBearer(auto_error=False)


def _generate_token(email: str, token_type: str, lifetime_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": email,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=lifetime_seconds)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def generate_access_token(email: str) -> str:
    return _generate_token(email, ACCESS_TOKEN, settings.JWT_EXPIRE_SECONDS)


def generate_refresh_token(email: str) -> str:
    return _generate_token(email, REFRESH_TOKEN, settings.JWT_REFRESH_EXPIRE_SECONDS)


def validate_token(token: str, token_type: str = ACCESS_TOKEN) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an UNAUTHORIZED
    `CoffeeShopException` when the token is expired, malformed or of the
    wrong type.
    """
    if not token:
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "JWT claims string is empty")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "Expired JWT token")
    except jwt.InvalidTokenError:
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "Invalid JWT token")
    if payload.get("type") != token_type or not payload.get("sub"):
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "Invalid JWT token")
    return payload


def get_username(token: str, token_type: str = ACCESS_TOKEN) -> str:
    """Return the email stored in a valid token's subject."""
    return validate_token(token, token_type)["sub"]


def load_active_user(session: Session, email: str) -> models.User:
    user = repositories.UserRepository(session).get_by_email(email)
    if not user:
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "User not found")
    if user.status != models.Status.ACTIVE:
        raise CoffeeShopException(RespCode.FORBIDDEN, "User is inactive")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    session: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise CoffeeShopException(RespCode.UNAUTHORIZED, "Missing bearer token")
    email = get_username(credentials.credentials)
    return load_active_user(session, email)


def is_admin(user: models.User) -> bool:
    return user.role is not None and user.role.name == models.RoleName.ROLE_ADMIN


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    """Dependency for admin-only routes."""
    if not is_admin(user):
        raise CoffeeShopException(RespCode.FORBIDDEN, "Admin role required")
    return user
