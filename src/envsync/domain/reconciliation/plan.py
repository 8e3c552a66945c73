"""Three-way diff between declared, recorded and live entries.

The plan is the contract between the pure decision logic and the sequencer
that turns it into remote calls. ``reconcile`` only reads the fingerprint
store; the digests to write or clear travel on the plan and are committed by
the caller once the remote calls succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .correlate import CorrelationNote, correlate_live
from .drift import fingerprint

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from envsync.domain.model import Entry, EntrySet, Subject

    from .drift import DriftDetector

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class OperationPlan:
    """Entries to remove, (re)create and keep for one cycle. Never persisted.

    A replaced key appears in both ``to_remove`` (recorded entry) and
    ``to_add`` (declared entry) and never in ``unchanged``.
    """

    subject: Subject
    to_add: Mapping[str, Entry] = field(default_factory=dict[str, "Entry"])
    to_remove: Mapping[str, Entry] = field(default_factory=dict[str, "Entry"])
    unchanged: Mapping[str, Entry] = field(default_factory=dict[str, "Entry"])
    fingerprint_writes: Mapping[str, bytes] = field(default_factory=dict[str, bytes])
    fingerprint_clears: frozenset[str] = frozenset()
    reasons: Mapping[str, str] = field(default_factory=dict[str, str])
    notes: tuple[CorrelationNote, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove

    @property
    def requires_settling(self) -> bool:
        return bool(self.to_add) and bool(self.to_remove)

    @property
    def replaced(self) -> frozenset[str]:
        return frozenset(self.to_add) & frozenset(self.to_remove)

    def summary(self) -> dict[str, int]:
        return {
            "to_remove": len(self.to_remove),
            "to_add": len(self.to_add),
            "unchanged": len(self.unchanged),
        }


def reconcile(
    subject: Subject,
    declared: EntrySet,
    prior: EntrySet,
    live: Iterable[Entry],
    *,
    drift: DriftDetector,
) -> OperationPlan:
    """Compute the operation plan converging ``live`` to ``declared``.

    The result does not depend on iteration order of the inputs. An empty
    ``declared`` set removes everything recorded.
    """

    correlation = correlate_live(prior, live)
    to_add: dict[str, Entry] = {}
    to_remove: dict[str, Entry] = {}
    unchanged: dict[str, Entry] = {}
    reasons: dict[str, str] = {}
    clears: set[str] = set()

    for key in sorted(correlation.refreshed):
        recorded = correlation.refreshed[key]
        wanted = declared.get(key)
        if wanted is None:
            to_remove[key] = recorded
            clears.add(key)
            reasons[key] = "removed_from_configuration"
            continue

        counterpart = correlation.live_by_key.get(key)
        reason = _replacement_reason(subject, wanted, recorded, counterpart, drift)
        if reason is not None or counterpart is None:
            to_remove[key] = recorded
            to_add[key] = wanted
            reasons[key] = reason or "missing_remotely"
            continue
        unchanged[key] = wanted.with_remote_fields(counterpart)

    for key in sorted(declared):
        if key not in prior:
            to_add[key] = declared[key]
            reasons[key] = "new"

    plan = OperationPlan(
        subject=subject,
        to_add=to_add,
        to_remove=to_remove,
        unchanged=unchanged,
        fingerprint_writes={key: fingerprint(entry.value or "") for key, entry in to_add.items()},
        fingerprint_clears=frozenset(clears),
        reasons=reasons,
        notes=tuple(correlation.notes),
    )
    log.debug("Planned %s for %s", plan.summary(), subject)
    return plan


def _replacement_reason(
    subject: Subject,
    wanted: Entry,
    recorded: Entry,
    counterpart: Entry | None,
    drift: DriftDetector,
) -> str | None:
    if counterpart is None:
        return "missing_remotely"
    if counterpart.remote_id != recorded.remote_id:
        return "remote_id_changed"
    if drift.is_changed(subject.subject_id, wanted.key, wanted.value or ""):
        return "value_changed"
    return drift.attributes_changed(wanted, counterpart)
