"""
Pydantic Schemas for Audit History.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from src.core.enums import AuditAction, AuditResourceType


class AuditLogEntry(BaseModel):
    """One audited change, with the actor's display name."""

    id: UUID
    action: AuditAction
    resource_type: AuditResourceType
    resource_id: UUID
    user_id: Optional[UUID] = None
    user_name: Optional[str] = None
    changes: Optional[dict[str, Any]] = None
    details: Optional[dict[str, Any]] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Paginated audit history."""

    items: list[AuditLogEntry]
    total: int
    skip: int
    limit: int
