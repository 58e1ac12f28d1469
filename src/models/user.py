"""
User Model
Back office accounts with their global role and client access grants
Source: https://docs.sqlalchemy.org/en/20/orm/quickstart.html
Verified: 2025-11-14
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimeStampedModel, UUIDModel

if TYPE_CHECKING:
    from src.models.affiliate import Affiliate
    from src.models.client import Client


class User(Base, UUIDModel, TimeStampedModel):
    """
    User account.

    The role is stored by name and checked verbatim against the named role
    groups; an unknown name grants nothing.
    """

    __tablename__ = "users"

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255))

    # Authorization
    role: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        comment="Global role name (SUPER_ADMIN, CLAIMS_EMPLOYEE, ...)",
    )

    # Account Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Activity Tracking
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    client_access: Mapped[list["UserClientAccess"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
    affiliate: Mapped[Optional["Affiliate"]] = relationship(
        back_populates="user",
        uselist=False,
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class UserClientAccess(Base, UUIDModel, TimeStampedModel):
    """Grant of a client's data to a CLIENT_ADMIN account."""

    __tablename__ = "user_client_access"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped["User"] = relationship(back_populates="client_access")
    client: Mapped["Client"] = relationship()

    __table_args__ = (UniqueConstraint("user_id", "client_id", name="uq_user_client_access"),)

    def __repr__(self) -> str:
        return f"<UserClientAccess(user_id={self.user_id}, client_id={self.client_id})>"
