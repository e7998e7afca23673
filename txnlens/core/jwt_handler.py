"""
JWT utility functions for token generation and validation

Tokens identify the user whose cache, training log and corrections a request
operates on: ``sub`` (or a legacy ``user_id`` claim) carries the user id.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from txnlens.core.config import settings


def create_access_token(
    user_id: str,
    expires_hours: Optional[int] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token for a user

    Args:
        user_id: User's ID, stored as ``sub``
        expires_hours: Lifetime override (defaults to JWT_EXPIRATION_HOURS)
        extra_claims: Additional claims merged into the payload

    Returns:
        str: Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    hours = settings.JWT_EXPIRATION_HOURS if expires_hours is None else expires_hours
    payload = dict(extra_claims or {})
    payload.update({
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(hours=hours),
    })
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired or names no user
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")

    if not (payload.get("sub") or payload.get("user_id")):
        raise jwt.InvalidTokenError("Invalid token: no user id")
    return payload
