"""Ports for state that must survive between reconciliation cycles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from envsync.domain.model import Entry


@runtime_checkable
class FingerprintReader(Protocol):
    def get(self, subject_id: str, key: str) -> bytes | None: ...


@runtime_checkable
class FingerprintStore(FingerprintReader, Protocol):
    """Opaque per-subject byte store for digests of write-only values."""

    def set(self, subject_id: str, key: str, digest: bytes) -> None: ...

    def clear(self, subject_id: str, key: str) -> None: ...


@runtime_checkable
class RecordedStateRepository(Protocol):
    """Entries recorded after the last successful cycle (values never stored)."""

    def load(self, subject_id: str) -> dict[str, Entry]: ...

    def replace(self, subject_id: str, entries: Mapping[str, Entry]) -> None: ...
