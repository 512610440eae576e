"""
Audit service - append-only, signed record of every state-changing action.

Writes happen inside a SAVEPOINT on the caller's session: the record commits
together with the primary operation, but a failed insert is rolled back alone
and reported to operators instead of aborting the operation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import NotFoundError
from timesheet_manager.core.integrations.observability import record_audit_failure
from timesheet_manager.db.base import utcnow
from timesheet_manager.db.repositories.audit_log_repository import AuditLogRepository
from timesheet_manager.models.audit_log import AuditLog, AuditAction
from timesheet_manager.schemas.audit import (
    AuditLogResponse,
    AuditLogListResponse,
    AuditVerificationResponse,
)
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.signature_service import (
    SignatureService,
    audit_fields,
    normalize,
)

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500
IP_MAX_LENGTH = 45


@dataclass(frozen=True)
class AuditContext:
    """Client metadata attached to every record written during a request."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def __post_init__(self):
        # Column sizes of audit_logs.ip and audit_logs.user_agent
        if self.ip and len(self.ip) > IP_MAX_LENGTH:
            object.__setattr__(self, "ip", self.ip[:IP_MAX_LENGTH])
        if self.user_agent and len(self.user_agent) > USER_AGENT_MAX_LENGTH:
            object.__setattr__(self, "user_agent", self.user_agent[:USER_AGENT_MAX_LENGTH])


def snapshot(instance: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Column values of a model instance as plain JSON types."""
    excluded = set(exclude)
    return {
        column.key: normalize(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.key not in excluded
    }


class AuditService(BaseService):
    """Service for recording, reading and verifying audit records."""

    def __init__(
        self,
        session: AsyncSession,
        signer: Optional[SignatureService] = None,
        context: Optional[AuditContext] = None,
    ):
        self.session = session
        self.audit_repo = AuditLogRepository(session)
        self.signer = signer or SignatureService.from_settings()
        self.context = context or AuditContext()

    def _fields_of(self, record: AuditLog):
        return audit_fields(
            record.action,
            record.resource_type,
            record.resource_id,
            record.user_id,
            record.created_at,
            record.details,
        )

    async def record(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: Any,
        actor_id: Optional[UUID],
        details: Optional[Dict[str, Any]] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Append a signed audit record.

        Returns the record, or None when it could not be written. Never
        raises on a write failure.
        """
        resource_id = str(resource_id)
        # Pending work of the primary operation must fail loudly, not here.
        await self.session.flush()

        try:
            created_at = utcnow()
            details = normalize(details or {})
            record = AuditLog(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                user_id=actor_id,
                details=details,
                old_values=normalize(old_values) if old_values is not None else None,
                new_values=normalize(new_values) if new_values is not None else None,
                ip=self.context.ip,
                user_agent=self.context.user_agent,
                created_at=created_at,
            )
            record.signature = self.signer.sign(
                audit_fields(action, resource_type, resource_id, actor_id, created_at, details)
            )
            async with self.session.begin_nested():
                self.session.add(record)
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            record_audit_failure(exc, action, resource_type, resource_id)
            return None

        logger.debug(
            "Audit record written",
            extra={"audit_action": action.value, "resource_type": resource_type, "resource_id": resource_id},
        )
        return record

    async def log_crud(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: Any,
        actor_id: Optional[UUID],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """Record a create/update/delete with before and after snapshots."""
        return await self.record(
            action,
            resource_type,
            resource_id,
            actor_id,
            details=details,
            old_values=old_values,
            new_values=new_values,
        )

    async def log_workflow(
        self,
        action: AuditAction,
        timesheet_id: UUID,
        actor_id: UUID,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """Record a timesheet workflow transition."""
        return await self.record(action, "timesheet", timesheet_id, actor_id, details=details)

    def verify(self, record: AuditLog) -> bool:
        """Recompute a stored record's signature; False if altered or unsigned."""
        return self.signer.verify(self._fields_of(record), record.signature)

    async def verify_by_id(self, record_id: UUID) -> AuditVerificationResponse:
        record = await self.audit_repo.get(record_id)
        if not record:
            raise NotFoundError("Audit record")
        valid = self.verify(record)
        if not valid:
            logger.warning(
                "Audit record failed verification",
                extra={"audit_id": str(record_id), "resource_type": record.resource_type},
            )
        return AuditVerificationResponse(id=record.id, valid=valid)

    async def get_audit_log(self, record_id: UUID) -> AuditLogResponse:
        record = await self.audit_repo.get(record_id)
        if not record:
            raise NotFoundError("Audit record")
        return AuditLogResponse.model_validate(record)

    async def list_audit_logs(
        self,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogListResponse:
        skip = (page - 1) * limit
        records = await self.audit_repo.search(
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            action=action,
            skip=skip,
            limit=limit,
        )
        total = await self.audit_repo.count(
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            action=action,
        )
        return AuditLogListResponse(
            items=[AuditLogResponse.model_validate(r) for r in records],
            total=total,
            page=page,
            limit=limit,
        )
