"""
Audit log Pydantic schemas. Read-only surface.
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

from timesheet_manager.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    """Response schema for an audit record."""
    id: UUID
    action: AuditAction
    resource_type: str
    resource_id: str
    user_id: Optional[UUID] = None
    details: Dict[str, Any] = {}
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    signature: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    limit: int


class AuditVerificationResponse(BaseModel):
    id: UUID
    valid: bool
