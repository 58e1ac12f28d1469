"""
Affiliate Model.
Insured persons of a client: policy holders (owners) and their dependents.
"""

from datetime import date
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.enums import AffiliateType
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_column_type

if TYPE_CHECKING:
    from src.models.client import Client
    from src.models.user import User


class Affiliate(Base, UUIDModel, TimeStampedModel):
    """
    Insured person.

    Dependents point at their owner through primary_affiliate_id. An
    affiliate may own a portal account (AFFILIATE role) through user_id.
    """

    __tablename__ = "affiliates"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    document_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    document_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)

    affiliate_type: Mapped[AffiliateType] = mapped_column(
        enum_column_type(AffiliateType),
        default=AffiliateType.OWNER,
        nullable=False,
    )
    primary_affiliate_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Owner this dependent is covered through",
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    client: Mapped["Client"] = relationship()
    primary_affiliate: Mapped[Optional["Affiliate"]] = relationship(remote_side="Affiliate.id")
    user: Mapped[Optional["User"]] = relationship(back_populates="affiliate")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Affiliate(id={self.id}, name='{self.full_name}')>"
