"""
Client and Insurer Models.
Corporate clients of the brokerage and the insurers it places policies with.
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimeStampedModel, UUIDModel


class Client(Base, UUIDModel, TimeStampedModel):
    """Company whose employees are covered through the brokerage."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tax_id: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        comment="Tax identification number (RUC)",
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}')>"


class Insurer(Base, UUIDModel, TimeStampedModel):
    """Insurance carrier issuing policies and invoices."""

    __tablename__ = "insurers"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    billing_cutoff_day: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Day of month the insurer closes its billing period",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Insurer(id={self.id}, name='{self.name}')>"
