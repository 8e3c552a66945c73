"""SQLAlchemy table metadata for recorded state and fingerprints."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringSetType(TypeDecorator[frozenset[str]]):
    """Store a set of strings as a sorted JSON array."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: frozenset[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> frozenset[str]:
        _ = dialect
        if value is None:
            return frozenset()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return frozenset()
        items = cast(list[Any], loaded)
        return frozenset(item for item in items if isinstance(item, str))


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

recorded_entry_table = Table(
    "recorded_entry",
    metadata,
    Column("subject_id", String, nullable=False),
    Column("key", String, nullable=False),
    Column("remote_id", String, nullable=False, default=""),
    Column("targets", StringSetType, nullable=False),
    Column("custom_environment_ids", StringSetType, nullable=False),
    Column("git_branch", String, nullable=True),
    Column("sensitive", Boolean, nullable=True),
    Column("comment", String(1000), nullable=True),
    Column("recorded_at", UTCDateTime, nullable=False),
    PrimaryKeyConstraint("subject_id", "key"),
)

entry_fingerprint_table = Table(
    "entry_fingerprint",
    metadata,
    Column("subject_id", String, nullable=False),
    Column("key", String, nullable=False),
    Column("digest", LargeBinary, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    PrimaryKeyConstraint("subject_id", "key"),
)


def create_all_tables(engine: Engine) -> None:
    """Create tables directly from metadata (tests and throwaway databases)."""

    metadata.create_all(engine)
