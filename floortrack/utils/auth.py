"""
Bearer-token authentication.

Tokens are JWTs whose ``sub`` claim is the user id. Issuing credentials
(login, password storage) belongs to the surrounding application; this
module signs tokens for it and resolves them back to a ``User`` on each
request.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from floortrack.config import settings
from floortrack.database import get_db
from floortrack.models.user import User
from floortrack.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

# A missing header arrives as None and is rejected in get_current_user
bearer_scheme = HTTPBearer(auto_error=False)


class AuthError(Exception):
    """A token that cannot be resolved to a user id."""
    pass


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign ``claims`` with an ``exp`` claim added.

    Args:
        claims: JWT claims, normally just ``sub``
        expires_delta: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = dict(claims, exp=utc_now() + expires_delta)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": str(user_id)}, expires_delta)


def verify_token(token: str) -> dict:
    """
    Decode a token and check its signature and expiry.

    Raises:
        AuthError: If the token is expired, malformed or wrongly signed
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError:
        raise AuthError("Could not validate credentials")


def user_id_from_token(token: str) -> int:
    subject = verify_token(token).get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthError("Could not validate credentials")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to a stored user."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        user_id = user_id_from_token(credentials.credentials)
    except AuthError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise _unauthorized(str(e))

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("Could not validate credentials")
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user
