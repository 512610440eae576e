"""
Session authentication service.

Drives the authentication sub-machine attached to each session token:

    CREDENTIAL_VERIFIED   --setup, enable-->  SECOND_FACTOR_VERIFIED
    SECOND_FACTOR_PENDING --verify-->         SECOND_FACTOR_VERIFIED

Credential verification itself happens in the identity collaborator, which
calls ``begin_session``. Microsoft-federated sessions start verified. A
password session starts CREDENTIAL_VERIFIED while the account has no second
factor and must enrol one (setup, then enable); once enrolled, sessions
start SECOND_FACTOR_PENDING and must answer the challenge (verify). No
workflow route accepts either unverified state.
"""

import logging
from datetime import timedelta
from typing import Optional

import pyotp
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.config import settings
from timesheet_manager.core.exceptions import NotFoundError, ForbiddenError, InvalidStateError
from timesheet_manager.core.security import AuthState, create_access_token
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.user import User, AuthProvider
from timesheet_manager.schemas.user import TokenResponse, TotpSetupResponse
from timesheet_manager.services.audit_service import AuditService, AuditContext
from timesheet_manager.services.base_service import BaseService

logger = logging.getLogger(__name__)


def initial_auth_state(user: User) -> AuthState:
    """State a freshly authenticated session starts in."""
    if user.auth_provider == AuthProvider.MICROSOFT:
        return AuthState.SECOND_FACTOR_VERIFIED
    if user.totp_enabled:
        return AuthState.SECOND_FACTOR_PENDING
    return AuthState.CREDENTIAL_VERIFIED


class SessionAuthService(BaseService):
    """Service for session tokens and the TOTP second factor."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.session = session
        self.user_repo = UserRepository(session)
        self.audit = AuditService(session, context=audit_context)

    def issue_token(self, user: User, auth_state: AuthState) -> TokenResponse:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token(
            data={
                "sub": str(user.id),
                "role": user.role.value,
                "provider": user.auth_provider.value,
                "auth_state": auth_state.value,
            },
            expires_delta=expires_delta,
        )
        return TokenResponse(
            access_token=token,
            expires_in=int(expires_delta.total_seconds()),
            auth_state=auth_state,
        )

    def _totp(self, user: User) -> pyotp.TOTP:
        return pyotp.TOTP(user.totp_secret)

    def _check_code(self, user: User, token: str) -> None:
        if not self._totp(user).verify(token, valid_window=settings.TOTP_VALID_WINDOW):
            logger.warning("Invalid second-factor code", extra={"user_id": str(user.id)})
            raise ForbiddenError("Invalid verification code")

    async def begin_session(self, user_id) -> TokenResponse:
        """Open a session for a user whose credentials were just verified."""
        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User")
        if not user.is_active:
            raise ForbiddenError("User account is not active")

        auth_state = initial_auth_state(user)
        await self.audit.record(
            AuditAction.LOGIN,
            "session",
            user.id,
            user.id,
            details={"provider": user.auth_provider, "auth_state": auth_state},
        )
        await self.session.commit()
        return self.issue_token(user, auth_state)

    async def setup_totp(self, user: User) -> TotpSetupResponse:
        """Generate a new secret. The factor stays disabled until a first code confirms it."""
        if user.auth_provider != AuthProvider.CREDENTIALS:
            raise InvalidStateError("Second factor is managed by the identity provider")
        if user.totp_enabled:
            raise InvalidStateError("Second factor is already enabled")

        secret = pyotp.random_base32()
        await self.user_repo.update(user, totp_secret=secret)
        await self.audit.record(
            AuditAction.UPDATE,
            "user",
            user.id,
            user.id,
            details={"totp": "setup"},
        )
        await self.session.commit()
        return TotpSetupResponse(
            secret=secret,
            provisioning_uri=pyotp.TOTP(secret).provisioning_uri(
                name=user.email, issuer_name=settings.TOTP_ISSUER
            ),
        )

    async def enable_totp(self, user: User, token: str) -> TokenResponse:
        """Confirm the pending secret; the confirming code also verifies this session."""
        if user.totp_enabled:
            raise InvalidStateError("Second factor is already enabled")
        if not user.totp_secret:
            raise InvalidStateError("Second factor setup has not been started")
        self._check_code(user, token)

        await self.user_repo.update(user, totp_enabled=True)
        await self.audit.record(
            AuditAction.UPDATE,
            "user",
            user.id,
            user.id,
            details={"totp": "enabled"},
        )
        await self.session.commit()
        return self.issue_token(user, AuthState.SECOND_FACTOR_VERIFIED)

    async def verify_totp(self, user: User, token: str) -> TokenResponse:
        """Complete the second-factor challenge of a password session."""
        if user.auth_provider != AuthProvider.CREDENTIALS:
            raise InvalidStateError("Second factor is managed by the identity provider")
        if not user.totp_enabled or not user.totp_secret:
            raise InvalidStateError("Second factor is not enabled; complete setup first")
        self._check_code(user, token)

        await self.audit.record(
            AuditAction.LOGIN,
            "session",
            user.id,
            user.id,
            details={"auth_state": AuthState.SECOND_FACTOR_VERIFIED},
        )
        await self.session.commit()
        return self.issue_token(user, AuthState.SECOND_FACTOR_VERIFIED)
