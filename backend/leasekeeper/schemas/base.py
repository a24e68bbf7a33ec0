"""Base schema utilities."""

from datetime import datetime
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class PatchSchema(BaseSchema):
    """Partial update body, applied with ``model_dump(exclude_unset=True)``.

    Omitting a field leaves the column alone. Sending ``null`` clears it, so
    fields backed by NOT NULL columns are listed in ``NOT_NULL`` and an
    explicit null for them is rejected here, before it reaches the row.
    """

    NOT_NULL: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        cleared = sorted(
            name for name in self.model_fields_set
            if name in self.NOT_NULL and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class TimestampMixin(BaseModel):
    """Mixin for created_at/updated_at timestamps."""

    created_at: datetime
    updated_at: Optional[datetime] = None


class IDMixin(BaseModel):
    """Mixin for UUID id field."""

    id: UUID


class MessageResponse(BaseSchema):
    message: str
