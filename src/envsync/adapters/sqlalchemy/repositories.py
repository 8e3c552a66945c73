"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select, update

from envsync.adapters.sqlalchemy.mappings import entry_fingerprint_table, recorded_entry_table
from envsync.domain.model import Entry, Target
from envsync.domain.ports import FingerprintStore, RecordedStateRepository

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy.orm import Session


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyRecordedStateRepository(RecordedStateRepository):
    """Persist the entries recorded after the last successful cycle.

    Values are never written: they are write-only and only their fingerprint
    survives, in ``entry_fingerprint``.
    """

    def __init__(self, session: Session, *, now: Callable[[], datetime] = _utcnow) -> None:
        self.session = session
        self._now = now

    def load(self, subject_id: str) -> dict[str, Entry]:
        table = recorded_entry_table
        stmt = select(table).where(table.c.subject_id == subject_id).order_by(table.c.key)
        entries: dict[str, Entry] = {}
        for row in self.session.execute(stmt).mappings():
            entries[row["key"]] = Entry(
                key=row["key"],
                remote_id=row["remote_id"],
                targets=frozenset(Target(name) for name in row["targets"]),
                custom_environment_ids=row["custom_environment_ids"],
                git_branch=row["git_branch"],
                sensitive=row["sensitive"],
                comment=row["comment"],
            )
        return entries

    def replace(self, subject_id: str, entries: Mapping[str, Entry]) -> None:
        table = recorded_entry_table
        self.session.execute(delete(table).where(table.c.subject_id == subject_id))
        if not entries:
            return
        recorded_at = self._now()
        self.session.execute(
            insert(table),
            [
                {
                    "subject_id": subject_id,
                    "key": key,
                    "remote_id": entry.remote_id,
                    "targets": frozenset(target.value for target in entry.targets),
                    "custom_environment_ids": entry.custom_environment_ids,
                    "git_branch": entry.git_branch,
                    "sensitive": entry.sensitive,
                    "comment": entry.comment,
                    "recorded_at": recorded_at,
                }
                for key, entry in sorted(entries.items())
            ],
        )


class SqlAlchemyFingerprintStore(FingerprintStore):
    """Fingerprints of write-only values, keyed by subject and entry key."""

    def __init__(self, session: Session, *, now: Callable[[], datetime] = _utcnow) -> None:
        self.session = session
        self._now = now

    def get(self, subject_id: str, key: str) -> bytes | None:
        table = entry_fingerprint_table
        stmt = select(table.c.digest).where(
            table.c.subject_id == subject_id,
            table.c.key == key,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def set(self, subject_id: str, key: str, digest: bytes) -> None:
        table = entry_fingerprint_table
        values = {"digest": digest, "updated_at": self._now()}
        result = self.session.execute(
            update(table)
            .where(table.c.subject_id == subject_id, table.c.key == key)
            .values(**values)
        )
        if result.rowcount == 0:
            self.session.execute(insert(table).values(subject_id=subject_id, key=key, **values))

    def clear(self, subject_id: str, key: str) -> None:
        table = entry_fingerprint_table
        self.session.execute(
            delete(table).where(table.c.subject_id == subject_id, table.c.key == key)
        )
