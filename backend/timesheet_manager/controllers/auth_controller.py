"""
Authentication controller for the TOTP second factor.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.user import User
from timesheet_manager.schemas.user import TokenResponse, TotpSetupResponse
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.session_auth_service import SessionAuthService


class AuthController(BaseController):
    """Controller for session authentication operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.auth_service = SessionAuthService(session, audit_context=audit_context)

    async def setup_totp(self, user: User) -> TotpSetupResponse:
        return await self.auth_service.setup_totp(user)

    async def enable_totp(self, user: User, token: str) -> TokenResponse:
        return await self.auth_service.enable_totp(user, token)

    async def verify_totp(self, user: User, token: str) -> TokenResponse:
        return await self.auth_service.verify_totp(user, token)
