"""Correlate recorded entries with the live snapshot.

Remote identifiers are not stable: an entry deleted and recreated out of band
keeps its logical identity (key, targets, custom environments) but gets a new
identifier. Correlation therefore tries the recorded identifier first and falls
back to the match key for live entries nobody tracks yet.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from envsync.domain.model import Entry, EntrySet

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CorrelationNote:
    """Several live entries matched one recorded entry; the smallest id won."""

    key: str
    chosen_remote_id: str
    candidates: tuple[str, ...]

    def __str__(self) -> str:
        others = ", ".join(self.candidates)
        return f"{self.key}: ambiguous live match ({others}), using {self.chosen_remote_id}"


@dataclass(slots=True)
class Correlation:
    """Recorded entries rebound to live identifiers plus their live counterparts."""

    refreshed: dict[str, Entry] = field(default_factory=dict[str, "Entry"])
    live_by_key: dict[str, Entry] = field(default_factory=dict[str, "Entry"])
    notes: list[CorrelationNote] = field(default_factory=list[CorrelationNote])


def unique_live_entries(live: Iterable[Entry]) -> list[Entry]:
    """Drop duplicate listings of the same remote identifier, keeping the first."""

    seen: set[str] = set()
    unique: list[Entry] = []
    for entry in live:
        if entry.remote_id:
            if entry.remote_id in seen:
                continue
            seen.add(entry.remote_id)
        unique.append(entry)
    return unique


def correlate_live(prior: EntrySet, live: Iterable[Entry]) -> Correlation:
    """Pick the live entry corresponding to every recorded key.

    Order of preference:
    1. the live entry carrying the recorded identifier
    2. an untracked live entry with the same match key (recorded entry is
       rebound to its identifier); ties go to the smallest identifier
    3. any live entry with the same key (identifier mismatch)
    """

    entries = unique_live_entries(live)
    by_id = {entry.remote_id: entry for entry in entries if entry.remote_id}
    tracked_ids = {entry.remote_id for entry in prior.values() if entry.remote_id}
    by_key: defaultdict[str, list[Entry]] = defaultdict(list)
    for entry in entries:
        by_key[entry.key].append(entry)

    result = Correlation()
    for key in sorted(prior):
        recorded = prior[key]
        tracked = by_id.get(recorded.remote_id) if recorded.remote_id else None
        if tracked is not None and tracked.key == key:
            result.refreshed[key] = recorded
            result.live_by_key[key] = tracked
            continue

        same_key = sorted(by_key.get(key, ()), key=lambda candidate: candidate.remote_id)
        matches = [
            candidate
            for candidate in same_key
            if candidate.remote_id not in tracked_ids
            and candidate.match_key == recorded.match_key
        ]
        if matches:
            chosen = matches[0]
            if len(matches) > 1:
                note = CorrelationNote(
                    key=key,
                    chosen_remote_id=chosen.remote_id,
                    candidates=tuple(candidate.remote_id for candidate in matches),
                )
                log.warning("Correlation ambiguity for %s", note)
                result.notes.append(note)
            log.debug("Rebinding %s from %s to %s", key, recorded.remote_id, chosen.remote_id)
            result.refreshed[key] = replace(recorded, remote_id=chosen.remote_id)
            result.live_by_key[key] = chosen
            continue

        result.refreshed[key] = recorded
        if same_key:
            result.live_by_key[key] = same_key[0]
    return result


def refresh_recorded_state(prior: EntrySet, live: Iterable[Entry]) -> dict[str, Entry]:
    """Return the recorded state as the live snapshot currently sees it.

    Entries whose live counterpart vanished are dropped; the others take the
    remote-resolved fields of their counterpart.
    """

    correlation = correlate_live(prior, live)
    refreshed: dict[str, Entry] = {}
    for key, recorded in correlation.refreshed.items():
        counterpart = correlation.live_by_key.get(key)
        if counterpart is None or counterpart.remote_id != recorded.remote_id:
            continue
        refreshed[key] = recorded.with_remote_fields(counterpart).without_value()
    return refreshed
