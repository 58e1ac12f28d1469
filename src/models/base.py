"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
Verified: 2025-11-14

Column types are the portable SQLAlchemy 2.0 generics (Uuid, JSON) so the
same models run on PostgreSQL (asyncpg) and on SQLite (aiosqlite) in tests.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Enum, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def enum_column_type(enum_cls: type[PyEnum], length: int = 30) -> Enum:
    """
    String-backed enum type storing member values.

    Note: Using VARCHAR instead of PostgreSQL ENUMs so migrations stay plain
    strings; the Python models still get Enum members back.
    """
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Evidence: Declarative base for type-safe ORM
    Source: https://docs.sqlalchemy.org/en/20/orm/mapping_styles.html#orm-declarative-mapping
    Verified: 2025-11-14
    """

    pass


class TimeStampedModel:
    """
    Mixin for models with created_at and updated_at timestamps.

    Evidence: Audit trail pattern
    Source: https://docs.sqlalchemy.org/en/20/orm/mapped_attributes.html#simple-validators
    Verified: 2025-11-14
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDModel:
    """
    Mixin for models with UUID primary key.

    Evidence: UUIDs prevent enumeration attacks and simplify distributed systems
    Source: https://docs.sqlalchemy.org/en/20/core/type_basics.html#sqlalchemy.types.Uuid
    Verified: 2025-11-14
    """

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
