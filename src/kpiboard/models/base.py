"""Base model for persisted domain records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Self
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError

from kpiboard.core.exceptions import InvalidInputError


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# Naive datetimes are read as UTC so comparisons against the clock never mix
# naive and aware values.
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


def new_id(prefix: str) -> str:
    """Generate a fresh record id such as ``tenant-3f2a...``."""
    return f"{prefix}-{uuid4().hex}"


class DomainModel(BaseModel):
    """Base class for all persisted records.

    Records are validated at construction and whenever a patch is applied,
    so an invalid value never reaches a registry or the store.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @classmethod
    def build(cls, **data: Any) -> Self:
        """Construct a record, converting validation failures to InvalidInputError."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise _invalid_input(e) from e

    def patched(self, patch: dict[str, Any]) -> Self:
        """Return a validated copy with ``patch`` shallow-merged over this record.

        Raises:
            InvalidInputError: If the merged record does not validate.
        """
        merged = {name: getattr(self, name) for name in type(self).model_fields}
        merged.update(patch)
        try:
            return type(self).model_validate(merged)
        except ValidationError as e:
            raise _invalid_input(e) from e


def _invalid_input(error: ValidationError) -> InvalidInputError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid input")
    return InvalidInputError(f"{field}: {message}" if field else message, field=field or None)
