"""Environment entries and the subject they belong to."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from envsync.domain.model.enums import EntryType, Target

if TYPE_CHECKING:
    from collections.abc import Iterable

MAX_COMMENT_LENGTH = 1000

type MatchKey = tuple[str, frozenset[Target], frozenset[str]]


@dataclass(frozen=True, slots=True)
class Subject:
    """Addressable unit of one reconciliation cycle (project + optional team)."""

    project_id: str
    team_id: str | None = None

    @property
    def subject_id(self) -> str:
        return f"{self.project_id}:{self.team_id or ''}"

    def __str__(self) -> str:
        return self.subject_id


@dataclass(frozen=True, slots=True, kw_only=True)
class Entry:
    """One named secret attached to a subject.

    ``value`` is write-only: entries read back from the control plane only carry
    it when the remote side reported it in plaintext (``decrypted`` true and not
    sensitive). ``sensitive`` and ``comment`` are ``None`` when undeclared.
    """

    key: str
    value: str | None = None
    remote_id: str = ""
    targets: frozenset[Target] = field(default_factory=frozenset[Target])
    custom_environment_ids: frozenset[str] = field(default_factory=frozenset[str])
    git_branch: str | None = None
    sensitive: bool | None = None
    comment: str | None = None
    decrypted: bool | None = None

    @property
    def match_key(self) -> MatchKey:
        return (self.key, self.targets, self.custom_environment_ids)

    @property
    def has_scope(self) -> bool:
        return bool(self.targets or self.custom_environment_ids)

    @property
    def entry_type(self) -> EntryType:
        return EntryType.SENSITIVE if self.sensitive else EntryType.ENCRYPTED

    @property
    def is_readable(self) -> bool:
        """Whether ``value`` is trustworthy plaintext for content comparison."""

        if self.sensitive or self.value is None:
            return False
        return self.decrypted is not False

    def with_remote_fields(self, live: Entry) -> Entry:
        """Carry forward the remote-assigned fields of ``live`` onto this entry.

        The write-only value stays the local one; everything the control plane
        resolved (identifier, scopes, storage class, comment) comes from ``live``.
        """

        return replace(
            live,
            value=self.value,
            decrypted=None,
        )

    def without_value(self) -> Entry:
        return replace(self, value=None, decrypted=None)


def entries_by_key(entries: Iterable[Entry]) -> dict[str, Entry]:
    return {entry.key: entry for entry in entries}
