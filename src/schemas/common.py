"""
Shared Pydantic Schemas.
Partial-update base and small reference shapes reused across entities.
Source: https://docs.pydantic.dev/latest/concepts/serialization/#modelmodel_dump
Verified: 2025-12-18
"""

from typing import Any, ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class PartialUpdate(BaseModel):
    """
    Base schema for PATCH bodies.

    A field left out of the body is "not provided"; a field sent as null
    means "clear it". ``to_updates()`` keeps that distinction by dumping only
    the fields that were actually set.
    """

    model_config = ConfigDict(extra="forbid")

    # Fields whose column cannot be cleared
    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"status"})

    @model_validator(mode="after")
    def check_not_empty(self) -> "PartialUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")

        cleared = sorted(
            name
            for name in self.model_fields_set & self.NON_NULLABLE_FIELDS
            if getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self

    def to_updates(self) -> dict[str, Any]:
        """Only the fields present in the request, explicit nulls included."""
        return self.model_dump(exclude_unset=True)


class EntityRef(BaseModel):
    """Id plus display name of a related record."""

    id: UUID
    name: str


class UserRef(BaseModel):
    """Actor reference shown on detail views."""

    id: UUID
    name: str
    email: Optional[str] = None
