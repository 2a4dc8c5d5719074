"""FastAPI dependencies for database sessions and bearer-token identity."""

from datetime import datetime
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Tokens are issued elsewhere; this only verifies the HS256 signature and
    extracts the identity claims.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    exp = payload.get("exp")
    if exp and datetime.utcnow().timestamp() > exp:
        raise AuthenticationError("Token has expired")

    return {
        "user_id": user_id,
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Authorization dependency for administrative operations."""
    if "admin" not in user["roles"]:
        raise AuthorizationError("Administrator role required")
    return user


RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
DatabaseSession = Depends(get_db)
