"""
API middleware for authentication and common concerns.
Centralized authentication enforcement for all protected routes.

Every workflow route depends on ``require_authentication``, which only
accepts sessions whose authentication sub-state is SECOND_FACTOR_VERIFIED.
The TOTP routes use ``require_credentials`` so a pending session can
complete its challenge.
"""

import ipaddress
from typing import Optional, Tuple
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import SecondFactorRequiredError
from timesheet_manager.core.security import AuthState, decode_access_token
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.services.audit_service import AuditContext

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _resolve_session(
    credentials: HTTPAuthorizationCredentials,
    db: AsyncSession,
) -> Tuple[User, AuthState]:
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid authentication token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _unauthorized("Token missing user ID")

    try:
        user_id = UUID(user_id_str)
        auth_state = AuthState(payload.get("auth_state"))
    except ValueError:
        raise _unauthorized("Malformed session token")

    user = await UserRepository(db).get(user_id)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active",
        )
    return user, auth_state


async def require_credentials(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Any valid session, whatever its second-factor state."""
    user, _ = await _resolve_session(credentials, db)
    return user


async def require_authentication(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Centralized authentication dependency.
    This should be used as a dependency on all protected routes.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(
            current_user: User = Depends(require_authentication)
        ):
            ...

    Raises:
        HTTPException: If the token is missing, invalid or expired
        SecondFactorRequiredError: If the session has not passed its second factor
    """
    user, auth_state = await _resolve_session(credentials, db)
    if auth_state != AuthState.SECOND_FACTOR_VERIFIED:
        raise SecondFactorRequiredError(details={"auth_state": auth_state.value})
    return user


def _parse_ip(value: Optional[str]) -> Optional[str]:
    """Normalized address, or None for anything that is not an IP literal."""
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_audit_context(request: Request) -> AuditContext:
    """
    Client address and agent recorded on every audit record of the request.

    Forwarding headers are client-controlled: a first hop that is not a valid
    address falls back to the peer address.
    """
    ip = None
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = _parse_ip(forwarded_for.split(",")[0])
    if ip is None:
        ip = _parse_ip(request.headers.get("x-real-ip"))
    if ip is None and request.client:
        ip = _parse_ip(request.client.host)
    return AuditContext(ip=ip, user_agent=request.headers.get("user-agent"))
