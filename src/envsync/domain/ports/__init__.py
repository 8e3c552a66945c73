"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import FingerprintReader, FingerprintStore, RecordedStateRepository
from .remote import RemoteEntrySet, SensitivePolicyReader
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "FingerprintReader",
    "FingerprintStore",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RecordedStateRepository",
    "RemoteEntrySet",
    "RepositoryCollection",
    "SensitivePolicyReader",
    "UnitOfWork",
]
