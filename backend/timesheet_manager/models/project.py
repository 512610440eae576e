"""
Project models - billing and categorization units with their validators and member groups.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid

from timesheet_manager.db.base import Base, utcnow


class Project(Base):
    """Project that time is logged against."""

    __tablename__ = "projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    description = Column(String(2000), nullable=True)
    is_billable = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    sub_projects = relationship("SubProject", back_populates="project", cascade="all, delete-orphan")
    validators = relationship("ProjectValidator", back_populates="project", cascade="all, delete-orphan")


class SubProject(Base):
    """Sub-division of a project."""

    __tablename__ = "sub_projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    code = Column(String(20), nullable=True)

    # Relationships
    project = relationship("Project", back_populates="sub_projects")


class ProjectValidator(Base):
    """Association model for project-validator relationships."""

    __tablename__ = "project_validators"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    # Relationships
    project = relationship("Project", back_populates="validators", foreign_keys=[project_id])
    user = relationship("User", foreign_keys=[user_id])


class Group(Base):
    """Named group of users that can be attached to projects."""

    __tablename__ = "groups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), unique=True, nullable=False)


class GroupMember(Base):
    """Association model for group membership."""

    __tablename__ = "group_members"

    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class ProjectGroup(Base):
    """Association model for project member groups."""

    __tablename__ = "project_groups"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
