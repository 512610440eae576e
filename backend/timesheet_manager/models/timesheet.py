"""
Timesheet models for time entry and approval workflows.
"""

from sqlalchemy import (
    Column,
    String,
    Date,
    ForeignKey,
    Integer,
    Boolean,
    DateTime,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from timesheet_manager.db.base import Base, utcnow


class TimesheetStatus(str, enum.Enum):
    """Timesheet status enumeration."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REOPENED = "REOPENED"


# Entries may only change while the sheet is in one of these states.
OPEN_STATUSES = frozenset({TimesheetStatus.DRAFT, TimesheetStatus.REOPENED})
# A validator has decided; the sheet stays locked until reopened.
DECIDED_STATUSES = frozenset({TimesheetStatus.APPROVED, TimesheetStatus.REJECTED})


class Timesheet(Base):
    """Timesheet model - one per user per week."""

    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_timesheet_user_week"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    week_start = Column(Date, nullable=False, index=True)
    week_end = Column(Date, nullable=False)
    status = Column(SQLEnum(TimesheetStatus), nullable=False, default=TimesheetStatus.DRAFT, index=True)
    total_minutes = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, nullable=True)
    locked_at = Column(DateTime, nullable=True)
    locked_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    integrity_hash = Column(String(64), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Optimistic concurrency: a stale UPDATE raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    locked_by = relationship("User", foreign_keys=[locked_by_id])
    entries = relationship("TimeEntry", back_populates="timesheet", order_by="TimeEntry.date")
    approvals = relationship("Approval", back_populates="timesheet", cascade="all, delete-orphan")

    @property
    def total_hours(self) -> float:
        return (self.total_minutes or 0) / 60

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class TimeEntry(Base):
    """Atomic unit of logged work."""

    __tablename__ = "time_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    sub_project_id = Column(UUID(as_uuid=True), ForeignKey("sub_projects.id"), nullable=True, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("timesheets.id", ondelete="SET NULL"), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=True)  # HH:MM
    end_time = Column(String(5), nullable=True)  # HH:MM
    duration = Column(Integer, nullable=False)  # minutes
    description = Column(String(2000), nullable=True)
    is_billable = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    timesheet = relationship("Timesheet", back_populates="entries")
    project = relationship("Project", foreign_keys=[project_id])
    sub_project = relationship("SubProject", foreign_keys=[sub_project_id])
