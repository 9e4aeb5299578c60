"""
Database engine, session factory and shared column types.

``get_db`` is the request-scoped FastAPI dependency; services never create
sessions on their own, they receive one from the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, create_engine
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.types import TypeDecorator

from operaciones.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as UTC.

    PostgreSQL keeps the offset; SQLite (test env) drops it, so values are
    normalised to UTC on the way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requiere datetimes con zona horaria")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def get_db() -> Generator[Session, None, None]:
    """Yield a session bound to the current request and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def enum_type(enum_cls: type[Enum], length: int = 20) -> SAEnum:
    """Store a ``str`` enum by value in a VARCHAR column (no native PG enum)."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda cls: [member.value for member in cls],
    )
