"""Ports for the remote control plane that owns the live entries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from envsync.domain.model import Entry, Subject


@runtime_checkable
class RemoteEntrySet(Protocol):
    """Authoritative provider of live entries; the only component that mutates them.

    ``list`` must report ``decrypted`` per entry. ``delete`` must raise
    ``RemoteEntryNotFoundError`` for unknown identifiers and anything else for
    other failures. ``ensure_subject`` raises ``SubjectNotFoundError`` when the
    addressed project does not exist.
    """

    def ensure_subject(self, subject: Subject) -> None: ...

    def list(self, subject: Subject) -> list[Entry]: ...

    def create_batch(self, subject: Subject, entries: Sequence[Entry]) -> list[Entry]: ...

    def delete(self, subject: Subject, remote_id: str) -> None: ...


@runtime_checkable
class SensitivePolicyReader(Protocol):
    """Reports whether the owning team forces every entry to be sensitive."""

    def enforces_sensitive(self, subject: Subject) -> bool: ...
