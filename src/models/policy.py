"""
Policy Model.
Group health policies placed by the brokerage with an insurer on behalf of a client.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.enums import PolicyStatus
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_column_type

if TYPE_CHECKING:
    from src.models.affiliate import Affiliate
    from src.models.client import Client, Insurer
    from src.models.user import User


class Policy(Base, UUIDModel, TimeStampedModel):
    """
    Insurance policy.

    Status changes go exclusively through the policy edit service, which
    enforces the policy lifecycle blueprint.
    """

    __tablename__ = "policies"

    policy_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Insurer-issued policy number",
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    insurer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("insurers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    type: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Plan type as named by the insurer",
    )
    status: Mapped[PolicyStatus] = mapped_column(
        enum_column_type(PolicyStatus),
        default=PolicyStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Validity
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Copays
    amb_copay: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    hosp_copay: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    maternity: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Premiums per coverage tier (T, T+1, T+Family)
    t_premium: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    tplus1_premium: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    tplusf_premium: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 4),
        nullable=True,
        comment="Tax rate applied to premiums (0.12 = 12%)",
    )
    additional_costs: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    client: Mapped["Client"] = relationship()
    insurer: Mapped["Insurer"] = relationship()
    updated_by: Mapped[Optional["User"]] = relationship()
    affiliates: Mapped[list["PolicyAffiliate"]] = relationship(back_populates="policy")

    __table_args__ = (Index("ix_policies_client_status", "client_id", "status"),)

    def __repr__(self) -> str:
        return f"<Policy(id={self.id}, number='{self.policy_number}', status='{self.status}')>"


class PolicyAffiliate(Base, UUIDModel, TimeStampedModel):
    """
    Membership of an affiliate in a policy.

    Removal keeps the row with removed_at set and is_active cleared; adding
    the affiliate again reactivates it. The claim form offers only policies
    the claim's affiliate is an active member of.
    """

    __tablename__ = "policy_affiliates"

    policy_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    affiliate_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    added_at: Mapped[date] = mapped_column(Date, nullable=False, comment="Coverage start for the affiliate")
    removed_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    policy: Mapped["Policy"] = relationship(back_populates="affiliates")
    affiliate: Mapped["Affiliate"] = relationship()

    __table_args__ = (UniqueConstraint("policy_id", "affiliate_id", name="uq_policy_affiliate"),)

    def __repr__(self) -> str:
        return f"<PolicyAffiliate(policy_id={self.policy_id}, affiliate_id={self.affiliate_id})>"
