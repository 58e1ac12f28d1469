"""
Audit Trail Service.

Provides:
- JSON-safe snapshots of ORM entities
- Audit entries staged on the caller's session, so they commit or roll
  back together with the change they describe
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import AuditAction, AuditResourceType
from src.models.audit import AuditLog


def column_values(entity: Any, fields: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """
    Current column values of an ORM entity.

    Attributes that are not loaded (e.g. server defaults right after a
    flush) are skipped, so reading a snapshot never emits SQL.

    Args:
        entity: Loaded ORM instance
        fields: Column keys to read (all mapped columns by default)
    """
    state = inspect(entity)
    if fields is None:
        fields = [attr.key for attr in state.mapper.column_attrs]
    return {name: getattr(entity, name) for name in fields if name not in state.unloaded}


def to_json_safe(values: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """Dates to ISO strings, decimals to numbers, UUIDs to strings, enums to values."""
    if values is None:
        return None
    return jsonable_encoder(dict(values))


class AuditService:
    """Stages audit log entries on an existing session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        *,
        action: AuditAction,
        resource_type: AuditResourceType,
        resource_id: UUID,
        user_id: Optional[UUID],
        client_id: Optional[UUID] = None,
        before: Optional[Mapping[str, Any]] = None,
        after: Optional[Mapping[str, Any]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        **scope: Any,
    ) -> AuditLog:
        """
        Add an audit entry to the session without flushing or committing.

        Extra keyword arguments are stored next to the snapshots in
        ``changes`` (e.g. ``claim_id`` for claim invoice events) so history
        readers can find child records of a resource.
        """
        changes = dict(scope)
        changes["before"] = to_json_safe(before)
        changes["after"] = to_json_safe(after)

        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            client_id=client_id,
            changes=jsonable_encoder(changes),
            details=to_json_safe(metadata),
        )
        self.session.add(entry)
        return entry
