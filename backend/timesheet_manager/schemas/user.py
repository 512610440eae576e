"""
User and session Pydantic schemas.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from timesheet_manager.core.security import AuthState
from timesheet_manager.models.user import UserRole, AuthProvider


class UserCreate(BaseModel):
    """Administrative provisioning of a user."""
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=200)
    role: UserRole = UserRole.USER
    manager_id: Optional[UUID] = None
    auth_provider: AuthProvider = AuthProvider.CREDENTIALS


class UserUpdate(BaseModel):
    """Role and manager changes. Send manager_id=null to clear the manager."""
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    role: Optional[UserRole] = None
    manager_id: Optional[UUID] = None


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    role: UserRole
    manager_id: Optional[UUID] = None
    is_active: bool
    auth_provider: AuthProvider
    totp_enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Session token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    auth_state: AuthState


class TotpSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str


class TotpCodeRequest(BaseModel):
    token: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
