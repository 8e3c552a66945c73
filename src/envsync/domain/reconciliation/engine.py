"""Orchestrator for one reconciliation cycle.

The engine composes the validation, planning and sequencing stages but does
not own I/O beyond what the sequencer's remote port does. Loading the recorded
state and committing the outcome are left to the caller's unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .plan import reconcile
from .validate import check_sensitive_policy, validate_declared

if TYPE_CHECKING:
    from collections.abc import Iterable

    from envsync.domain.model import Entry, EntrySet, Subject
    from envsync.domain.ports import FingerprintStore, SensitivePolicyReader

    from .drift import DriftDetector
    from .plan import OperationPlan
    from .sequence import ChangeSequencer

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class CycleResult:
    """Outcome of a successful cycle."""

    plan: OperationPlan
    applied: dict[str, Entry]

    @property
    def recorded(self) -> dict[str, Entry]:
        """New recorded state: the applied entries without their write-only values."""

        return {key: entry.without_value() for key, entry in self.applied.items()}


@dataclass(slots=True)
class ReconciliationEngine:
    """Validate, plan and apply declared entries for one subject."""

    drift: DriftDetector
    sequence: ChangeSequencer
    policy: SensitivePolicyReader | None = None

    def plan_cycle(
        self,
        subject: Subject,
        declared: EntrySet,
        prior: EntrySet,
        live: Iterable[Entry],
    ) -> OperationPlan:
        """Validate ``declared`` and compute the plan without touching remote state."""

        validate_declared(declared)
        if self.policy is not None:
            check_sensitive_policy(subject, declared, prior, self.policy)
        plan = reconcile(subject, declared, prior, live, drift=self.drift)
        for note in plan.notes:
            log.warning("Correlation note for %s: %s", subject, note)
        log.info(
            "Planned environment variables for %s: to_remove=%s, to_add=%s, unchanged=%s",
            subject,
            len(plan.to_remove),
            len(plan.to_add),
            len(plan.unchanged),
        )
        return plan

    def run_cycle(
        self,
        subject: Subject,
        declared: EntrySet,
        prior: EntrySet,
        live: Iterable[Entry],
    ) -> CycleResult:
        """Plan and apply; raises instead of returning a partial result."""

        plan = self.plan_cycle(subject, declared, prior, live)
        applied = self.sequence(plan)
        log.info("Reconciled %s: %s entries recorded", subject, len(applied))
        return CycleResult(plan=plan, applied=applied)


def apply_fingerprint_updates(plan: OperationPlan, store: FingerprintStore) -> None:
    """Write the digests of (re)created entries and clear those of removed ones."""

    subject_id = plan.subject.subject_id
    for key in sorted(plan.fingerprint_clears):
        store.clear(subject_id, key)
    for key in sorted(plan.fingerprint_writes):
        store.set(subject_id, key, plan.fingerprint_writes[key])
