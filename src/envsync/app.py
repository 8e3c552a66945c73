"""Application orchestration entry points."""

from __future__ import annotations

import threading
import weakref
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from envsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from envsync.adapters.vercel import VercelEntrySet
from envsync.config import SettlingConfig, get_settling_config
from envsync.declared import DeclaredEnvironment
from envsync.domain.reconciliation import (
    ChangeSequencer,
    ConsistencyProbeSettling,
    CycleResult,
    DriftDetector,
    FixedDelaySettling,
    OperationPlan,
    ReconciliationEngine,
    SubjectNotFoundError,
    apply_fingerprint_updates,
    refresh_recorded_state,
    validate_declared,
)
from envsync.domain.reconciliation.sequence import never_cancelled

if TYPE_CHECKING:
    from envsync.domain.model import Entry, Subject
    from envsync.domain.ports import (
        FingerprintReader,
        RemoteEntrySet,
        SensitivePolicyReader,
    )
    from envsync.domain.ports.unit_of_work import (
        ReconciliationRepositories,
        ReconciliationUnitOfWork,
    )
    from envsync.domain.reconciliation import SettlingPolicy

type UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

log = getLogger(__name__)

_LOCKS_GUARD = threading.Lock()
_SUBJECT_LOCKS: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()


def subject_lock(subject: Subject) -> threading.Lock:
    """Return the lock serialising cycles of ``subject`` within this process.

    Locks live only as long as someone holds a reference to them.
    """

    with _LOCKS_GUARD:
        return _SUBJECT_LOCKS.setdefault(subject.subject_id, threading.Lock())


def build_settling_policy(config: SettlingConfig, remote: RemoteEntrySet) -> SettlingPolicy:
    if config.strategy == "probe":
        return ConsistencyProbeSettling(
            remote=remote, interval=config.probe_interval, timeout=config.seconds
        )
    return FixedDelaySettling(seconds=config.seconds)


def build_engine(
    *,
    remote: RemoteEntrySet,
    fingerprints: FingerprintReader,
    policy: SensitivePolicyReader | None = None,
    settling: SettlingConfig | None = None,
    cancelled: Callable[[], bool] = never_cancelled,
) -> ReconciliationEngine:
    settle = build_settling_policy(settling or get_settling_config(), remote)
    return ReconciliationEngine(
        drift=DriftDetector(store=fingerprints),
        sequence=ChangeSequencer(remote=remote, settle=settle, cancelled=cancelled),
        policy=policy,
    )


def plan_environment(
    declared: DeclaredEnvironment,
    *,
    remote: RemoteEntrySet | None = None,
    policy: SensitivePolicyReader | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> OperationPlan:
    """Compute what ``apply_environment`` would do, without mutating anything."""

    validate_declared(declared.entries)
    effective_remote, effective_policy = _resolve_remote(remote, policy)
    effective_uow = _resolve_unit_of_work_factory(unit_of_work_factory)
    subject = declared.subject

    with subject_lock(subject), effective_uow() as uow:
        repositories = uow.repositories
        prior = repositories.recorded_state.load(subject.subject_id)
        live = effective_remote.list(subject)
        engine = build_engine(
            remote=effective_remote,
            fingerprints=repositories.fingerprints,
            policy=effective_policy,
            # planning never reaches the settling step
            settling=SettlingConfig(seconds=0.0),
        )
        return engine.plan_cycle(subject, declared.entries, prior, live)


def apply_environment(
    declared: DeclaredEnvironment,
    *,
    remote: RemoteEntrySet | None = None,
    policy: SensitivePolicyReader | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    settling: SettlingConfig | None = None,
    cancelled: Callable[[], bool] = never_cancelled,
) -> CycleResult:
    """Converge the live entries of the declared subject and record the outcome.

    The recorded state and fingerprints are committed only when every remote
    call succeeded; on failure the previous state stays in place and the next
    cycle re-plans from it.
    """

    validate_declared(declared.entries)
    effective_remote, effective_policy = _resolve_remote(remote, policy)
    effective_uow = _resolve_unit_of_work_factory(unit_of_work_factory)
    subject = declared.subject
    log.info("Starting apply for %s: declared=%s", subject, len(declared.entries))

    with subject_lock(subject), effective_uow() as uow:
        repositories = uow.repositories
        prior = repositories.recorded_state.load(subject.subject_id)
        effective_remote.ensure_subject(subject)
        live = effective_remote.list(subject)
        engine = build_engine(
            remote=effective_remote,
            fingerprints=repositories.fingerprints,
            policy=effective_policy,
            settling=settling,
            cancelled=cancelled,
        )
        result = engine.run_cycle(subject, declared.entries, prior, live)
        repositories.recorded_state.replace(subject.subject_id, result.recorded)
        apply_fingerprint_updates(result.plan, repositories.fingerprints)
        uow.commit()

    log.info(
        "Finished apply for %s: removed=%s, added=%s, unchanged=%s",
        subject,
        len(result.plan.to_remove),
        len(result.plan.to_add),
        len(result.plan.unchanged),
    )
    return result


def refresh_environment(
    subject: Subject,
    *,
    remote: RemoteEntrySet | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> dict[str, Entry]:
    """Rebind the recorded state to the live snapshot and forget vanished entries.

    A subject that no longer exists remotely loses its whole recorded state.
    """

    effective_remote, _ = _resolve_remote(remote, None)
    effective_uow = _resolve_unit_of_work_factory(unit_of_work_factory)

    with subject_lock(subject), effective_uow() as uow:
        repositories = uow.repositories
        try:
            live = effective_remote.list(subject)
        except SubjectNotFoundError:
            _forget_subject(repositories, subject)
            uow.commit()
            return {}
        prior = repositories.recorded_state.load(subject.subject_id)
        refreshed = refresh_recorded_state(prior, live)
        for key in sorted(set(prior) - set(refreshed)):
            log.info("Recorded entry %s vanished from %s", key, subject)
            repositories.fingerprints.clear(subject.subject_id, key)
        repositories.recorded_state.replace(subject.subject_id, refreshed)
        uow.commit()
    return refreshed


def destroy_environment(
    subject: Subject,
    *,
    remote: RemoteEntrySet | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    cancelled: Callable[[], bool] = never_cancelled,
) -> CycleResult:
    """Remove every recorded entry of ``subject`` from the remote side."""

    effective_remote, _ = _resolve_remote(remote, None)
    effective_uow = _resolve_unit_of_work_factory(unit_of_work_factory)
    try:
        return apply_environment(
            DeclaredEnvironment(subject=subject, entries={}),
            remote=effective_remote,
            policy=None,
            unit_of_work_factory=effective_uow,
            cancelled=cancelled,
        )
    except SubjectNotFoundError:
        with subject_lock(subject), effective_uow() as uow:
            forgotten = _forget_subject(uow.repositories, subject)
            uow.commit()
    return CycleResult(
        plan=OperationPlan(
            subject=subject, to_remove=forgotten, fingerprint_clears=frozenset(forgotten)
        ),
        applied={},
    )


def _forget_subject(
    repositories: ReconciliationRepositories, subject: Subject
) -> dict[str, Entry]:
    prior = repositories.recorded_state.load(subject.subject_id)
    log.warning("%s no longer exists; forgetting %s recorded entries", subject, len(prior))
    for key in sorted(prior):
        repositories.fingerprints.clear(subject.subject_id, key)
    repositories.recorded_state.replace(subject.subject_id, {})
    return prior


def _resolve_remote(
    remote: RemoteEntrySet | None,
    policy: SensitivePolicyReader | None,
) -> tuple[RemoteEntrySet, SensitivePolicyReader | None]:
    if remote is not None:
        return remote, policy
    vercel = VercelEntrySet()
    return vercel, policy or vercel


def _resolve_unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyReconciliationUnitOfWork
