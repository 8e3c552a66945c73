"""SQLAlchemy adapter package for envsync."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    entry_fingerprint_table,
    metadata,
    recorded_entry_table,
)
from .repositories import SqlAlchemyFingerprintStore, SqlAlchemyRecordedStateRepository

__all__ = [
    "SqlAlchemyFingerprintStore",
    "SqlAlchemyRecordedStateRepository",
    "create_all_tables",
    "entry_fingerprint_table",
    "metadata",
    "recorded_entry_table",
]
