"""
Approval model - one validator's vote on a submitted timesheet.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from timesheet_manager.db.base import Base, utcnow


class ApprovalStatus(str, enum.Enum):
    """Approval status enumeration."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Approval(Base):
    """Approval request for a (timesheet, validator) pair."""

    __tablename__ = "approvals"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "validator_id", name="uq_approval_timesheet_validator"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    validator_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)
    comment = Column(String(2000), nullable=True)
    decided_at = Column(DateTime, nullable=True)
    signature = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    timesheet = relationship("Timesheet", back_populates="approvals")
    validator = relationship("User", foreign_keys=[validator_id])
