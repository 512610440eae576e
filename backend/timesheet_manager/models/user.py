"""
User model - timesheet owners, validators and administrators.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from timesheet_manager.db.base import Base, utcnow


class UserRole(str, enum.Enum):
    """User role enumeration."""
    USER = "USER"
    VALIDATOR = "VALIDATOR"
    ADMIN = "ADMIN"


class AuthProvider(str, enum.Enum):
    """How the account proves its identity."""
    CREDENTIALS = "credentials"
    MICROSOFT = "microsoft"


class User(Base):
    """User account. Never hard-deleted; deactivated via is_active."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER, index=True)
    manager_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    auth_provider = Column(SQLEnum(AuthProvider), nullable=False, default=AuthProvider.CREDENTIALS)
    totp_enabled = Column(Boolean, nullable=False, default=False)
    totp_secret = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    manager = relationship("User", remote_side=[id], foreign_keys=[manager_id])

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
