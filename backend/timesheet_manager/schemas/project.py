"""
Project Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID


class ProjectBase(BaseModel):
    """Base project schema with common fields."""
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    is_billable: bool = True


class ProjectCreate(ProjectBase):
    """Schema for creating a project. Codes are stored upper-case."""
    code: str = Field(..., min_length=1, max_length=20, pattern=r"^[A-Za-z0-9_-]+$")

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.upper()


class ProjectUpdate(BaseModel):
    """Schema for updating a project (all fields optional)."""
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    is_billable: Optional[bool] = None
    is_active: Optional[bool] = None


class SubProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: Optional[str] = Field(None, max_length=20)


class SubProjectResponse(BaseModel):
    id: UUID
    project_id: UUID
    name: str
    code: Optional[str] = None

    class Config:
        from_attributes = True


class ValidatorSummary(BaseModel):
    id: UUID
    name: str
    email: str

    class Config:
        from_attributes = True


class ProjectValidatorsUpdate(BaseModel):
    """Full replacement of a project's validators. An empty list removes them all."""
    user_ids: List[UUID] = Field(default_factory=list)


class ProjectSummary(BaseModel):
    id: UUID
    name: str
    code: str
    is_active: bool

    class Config:
        from_attributes = True


class ProjectResponse(ProjectBase):
    """Schema for project response."""
    id: UUID
    code: str
    is_active: bool
    created_at: datetime
    sub_projects: List[SubProjectResponse] = []
    validators: List[ValidatorSummary] = []
    spent_hours: float = 0.0


class ProjectListResponse(BaseModel):
    items: List[ProjectResponse]
    total: int


class ProjectDeleteResponse(BaseModel):
    """Projects with logged time are deactivated; unused ones are removed."""
    id: UUID
    deleted: bool
    is_active: bool


class UserProjectsResponse(BaseModel):
    user_id: UUID
    validating: List[ProjectSummary]
