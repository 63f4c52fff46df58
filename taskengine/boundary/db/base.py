"""
SQLAlchemy declarative base and common mixins.

Every task store table (tasks, documents, document_chunks) gets a UUID
primary key and UTC created/updated timestamps from these mixins.

Dependencies: sqlalchemy
System role: Foundation for all database models
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base; create_tables() builds everything registered here."""

    pass


class UUIDMixin:
    """
    UUID v4 primary key.

    Stored as native UUID on PostgreSQL and CHAR(32) on SQLite, so the
    same models run in production and in tests.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )


class TimestampMixin:
    """
    created_at / updated_at in UTC.

    created_at doubles as the FIFO key for claim ordering within a
    priority tier.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
