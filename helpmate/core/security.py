"""
helpmate/core/security.py

Purpose: Authentication primitives

- Password hashing (bcrypt via passlib)
- JWT access tokens (python-jose)
- FastAPI dependencies: required user, optional user, admin user
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from helpmate.core.config import settings
from helpmate.core.exceptions import AuthenticationError, PermissionDeniedError
from helpmate.core.logging import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: Dict[str, Any]) -> str:
    """
    Signs an access token for a user document.

    The token carries the user's id plus the profile flags the client needs
    to render navigation without another round trip.
    """
    expire = datetime.now(timezone.utc) + timedelta(days=settings.JWT_EXPIRE_DAYS)
    claims = {
        "sub": str(user["_id"]),
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "is_admin": bool(user.get("is_admin", False)),
        "subscription_active": bool(user.get("subscription_active", False)),
        "subscription_plan": user.get("subscription_plan"),
        "exp": expire,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Validates a token and returns its claims.

    Raises:
        AuthenticationError: If the token is malformed, forged or expired
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected access token: {e}")
        raise AuthenticationError("Not authorized, token failed")

    if not payload.get("sub"):
        raise AuthenticationError("Not authorized, token failed")
    return payload


async def _load_user(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Imported lazily to keep this module importable without the service layer
    from helpmate.services.user_service import get_user_by_id

    user = await get_user_by_id(payload["sub"])
    if not user:
        raise AuthenticationError("Not authorized, user no longer exists")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Dependency for protected routes."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")
    payload = decode_access_token(credentials.credentials)
    return await _load_user(payload)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Dict[str, Any]]:
    """
    Dependency for routes open to guests.
    A missing token yields None; a bad token is still rejected.
    """
    if credentials is None or not credentials.credentials:
        return None
    payload = decode_access_token(credentials.credentials)
    return await _load_user(payload)


async def get_admin_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("is_admin"):
        raise PermissionDeniedError("Not authorized as an admin")
    return user
