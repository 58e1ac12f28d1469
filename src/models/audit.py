"""
Audit Logging Model.

Every lifecycle-affecting change writes one row here, inside the same
transaction as the change itself.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.enums import AuditAction, AuditResourceType
from src.models.base import Base, JSONType, UUIDModel, enum_column_type

if TYPE_CHECKING:
    from src.models.user import User


class AuditLog(Base, UUIDModel):
    """
    Immutable audit log entry.

    changes holds the before/after snapshots, details holds request metadata
    such as the acting role and the status transition.
    """

    __tablename__ = "audit_logs"

    # Action Information
    action: Mapped[AuditAction] = mapped_column(
        enum_column_type(AuditAction, length=50),
        nullable=False,
        index=True,
        comment="Type of action performed",
    )
    resource_type: Mapped[AuditResourceType] = mapped_column(
        enum_column_type(AuditResourceType),
        nullable=False,
        comment="Type of resource affected",
    )
    resource_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="ID of affected resource",
    )

    # Actor Information
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="User ID (null for system actions)",
    )
    client_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        nullable=True,
        index=True,
        comment="Client the resource belongs to",
    )

    # Change Details
    changes: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Before/after snapshots of the resource",
    )
    details: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Additional context about the action",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        index=True,
        comment="When the action occurred",
    )

    user: Mapped[Optional["User"]] = relationship()

    # Indexes for common queries
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
        Index("ix_audit_logs_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action='{self.action}', resource='{self.resource_type}')>"
