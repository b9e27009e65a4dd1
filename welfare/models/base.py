from datetime import datetime, UTC

from sqlmodel import SQLModel, Field
from sqlalchemy import func


def utcnow() -> datetime:
    return datetime.now(UTC)


class Timestamped(SQLModel):
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_column_kwargs={"server_default": func.now()})
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": func.now(), "onupdate": func.now()},
    )


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
