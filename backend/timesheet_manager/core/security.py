"""
Session tokens.
Issues and decodes the signed JWT that carries the actor identity and the
authentication sub-state of the session.
"""

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from timesheet_manager.core.config import settings


class AuthState(str, enum.Enum):
    """
    Authentication sub-machine attached to a session.

    CREDENTIAL_VERIFIED: password accepted, no second factor enrolled yet.
    SECOND_FACTOR_PENDING: password accepted, enrolled TOTP code outstanding.
    SECOND_FACTOR_VERIFIED: the only state workflow routes accept.
    """
    CREDENTIAL_VERIFIED = "CREDENTIAL_VERIFIED"
    SECOND_FACTOR_PENDING = "SECOND_FACTOR_PENDING"
    SECOND_FACTOR_VERIFIED = "SECOND_FACTOR_VERIFIED"


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Encode a session token with an expiry."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a session token. Returns None if invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return None
