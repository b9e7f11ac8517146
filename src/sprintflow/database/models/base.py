"""Declarative base, timestamp mixin and portable column types.

Every table carries a UUID ``id`` plus ``created_at``/``updated_at``
through ``TimestampMixin``. ``JSONType`` stores structured columns
as JSONB on PostgreSQL and JSON on SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """Primary key and audit timestamps shared by all tables.

    Values are generated client-side so that freshly flushed rows can be
    read without a refresh round-trip; the server defaults keep raw SQL
    inserts (migrations, fixtures) valid.

    Attributes:
        id: UUID primary key.
        created_at: Timestamp of row creation.
        updated_at: Timestamp of the last ORM or Core update.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )
