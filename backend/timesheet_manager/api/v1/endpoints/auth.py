"""
Second-factor (TOTP) endpoints.
These accept sessions that have not yet passed the second factor.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_credentials, get_audit_context
from timesheet_manager.controllers.auth_controller import AuthController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.user import TokenResponse, TotpSetupResponse, TotpCodeRequest
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.post("/totp/setup", response_model=TotpSetupResponse)
async def setup_totp(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_credentials),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Generate a TOTP secret and provisioning URI for an authenticator app."""
    controller = AuthController(db, audit_context)
    return await controller.setup_totp(current_user)


@router.post("/totp/enable", response_model=TokenResponse)
async def enable_totp(
    body: TotpCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_credentials),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Confirm the TOTP secret with a first code. Returns a verified session token."""
    controller = AuthController(db, audit_context)
    return await controller.enable_totp(current_user, body.token)


@router.post("/totp/verify", response_model=TokenResponse)
async def verify_totp(
    body: TotpCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_credentials),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Complete the second-factor challenge. Returns a verified session token."""
    controller = AuthController(db, audit_context)
    return await controller.verify_totp(current_user, body.token)
