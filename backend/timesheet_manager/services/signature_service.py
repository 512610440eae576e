"""
Signature service.

Deterministic SHA-256 digests over canonicalized payloads. Used for the
submission integrity hash, per-decision signatures and audit-record
signatures.

Payloads are passed as an explicit ordered sequence of ``(name, value)``
pairs, so the digest never depends on the insertion order of a mapping.
Nested mappings inside a value are serialized with sorted keys.

Without a key this is tamper evidence only: anyone with write access to the
store can recompute a matching digest for altered data. Configuring
``AUDIT_SIGNING_KEY`` switches to HMAC-SHA256, after which verification
requires the same key.
"""

import hashlib
import hmac
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Tuple
from uuid import UUID

from timesheet_manager.core.config import settings
from timesheet_manager.services.base_service import BaseService

SignedFields = Sequence[Tuple[str, Any]]


def normalize(value: Any) -> Any:
    """Reduce a value to plain JSON types, the same way before storing and before signing."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return normalize(value.value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [normalize(v) for v in value]
    return str(value)


def canonicalize(fields: Iterable[Tuple[str, Any]]) -> bytes:
    """Serialize ordered fields to a deterministic byte sequence."""
    parts = []
    for name, value in fields:
        encoded_value = json.dumps(
            normalize(value),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
        parts.append(f"{json.dumps(name)}:{encoded_value}")
    return ("{" + ",".join(parts) + "}").encode("utf-8")


def submission_fields(
    owner_id: UUID,
    timesheet_id: UUID,
    total_minutes: int,
    entry_count: int,
    submitted_at: datetime,
) -> SignedFields:
    return (
        ("ownerId", owner_id),
        ("timesheetId", timesheet_id),
        ("totalMinutes", total_minutes),
        ("entryCount", entry_count),
        ("timestamp", submitted_at),
    )


def decision_fields(
    timesheet_id: UUID,
    validator_id: UUID,
    decision: Any,
    decided_at: datetime,
) -> SignedFields:
    return (
        ("timesheetId", timesheet_id),
        ("validatorId", validator_id),
        ("status", decision),
        ("timestamp", decided_at),
    )


def audit_fields(
    action: Any,
    resource_type: str,
    resource_id: str,
    actor_id: Optional[UUID],
    created_at: datetime,
    details: Optional[dict],
) -> SignedFields:
    return (
        ("action", action),
        ("resourceType", resource_type),
        ("resourceId", resource_id),
        ("actorId", actor_id),
        ("timestamp", created_at),
        ("details", details or {}),
    )


class SignatureService(BaseService):
    """Computes and verifies hex digests over canonicalized fields."""

    def __init__(self, key: Optional[str] = None):
        self._key = key.encode("utf-8") if key else None

    @classmethod
    def from_settings(cls) -> "SignatureService":
        return cls(settings.AUDIT_SIGNING_KEY or None)

    @property
    def is_keyed(self) -> bool:
        return self._key is not None

    def sign(self, fields: SignedFields) -> str:
        payload = canonicalize(fields)
        if self._key is not None:
            return hmac.new(self._key, payload, hashlib.sha256).hexdigest()
        return hashlib.sha256(payload).hexdigest()

    def verify(self, fields: SignedFields, signature: Optional[str]) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign(fields), signature)
