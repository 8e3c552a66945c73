"""Pure domain model for environment entries."""

from __future__ import annotations

from collections.abc import Mapping

from .entry import MAX_COMMENT_LENGTH, Entry, MatchKey, Subject, entries_by_key
from .enums import EntryType, Target

type EntrySet = Mapping[str, Entry]

__all__ = [
    "MAX_COMMENT_LENGTH",
    "Entry",
    "EntrySet",
    "EntryType",
    "MatchKey",
    "Subject",
    "Target",
    "entries_by_key",
]
