from __future__ import annotations

import gc
from typing import TYPE_CHECKING

import pytest

from envsync import app
from envsync.app import (
    apply_environment,
    destroy_environment,
    plan_environment,
    refresh_environment,
    subject_lock,
)
from envsync.config import SettlingConfig
from envsync.declared import DeclaredEnvironment
from envsync.domain.model import Subject
from envsync.domain.reconciliation import (
    EntryValidationError,
    RemoteCallFailure,
    SubjectNotFoundError,
    fingerprint,
)
from tests.support.fakes import SUBJECT, FakeRemote, FakeStorage, FakeUnitOfWork, make_entry

if TYPE_CHECKING:
    from collections.abc import Callable

    from envsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyReconciliationUnitOfWork

NO_SETTLING = SettlingConfig(seconds=0.0)


def _declared(**values: str) -> DeclaredEnvironment:
    return DeclaredEnvironment(
        subject=SUBJECT,
        entries={key: make_entry(key, value, sensitive=True) for key, value in values.items()},
    )


def _apply(
    declared: DeclaredEnvironment,
    remote: FakeRemote,
    factory: Callable[[], FakeUnitOfWork],
) -> None:
    apply_environment(
        declared, remote=remote, unit_of_work_factory=factory, settling=NO_SETTLING
    )


def test_apply_creates_entries_and_commits_state(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x", B="y"), fake_remote, fake_unit_of_work)

    live = fake_remote.live_by_key()
    recorded = fake_storage.recorded.load(SUBJECT.subject_id)
    assert set(recorded) == {"A", "B"}
    assert recorded["A"].remote_id == live["A"].remote_id
    assert recorded["A"].value is None
    assert fake_storage.fingerprints.get(SUBJECT.subject_id, "A") == fingerprint("x")
    assert fake_storage.commits == 1


def test_second_apply_issues_no_mutations(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)
    fake_remote.calls.clear()

    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)

    assert fake_remote.operations() == []
    assert fake_storage.commits == 2


def test_changed_value_is_replaced_and_fingerprint_updated(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)
    old_id = fake_remote.live_by_key()["A"].remote_id
    fake_remote.calls.clear()

    _apply(_declared(A="y"), fake_remote, fake_unit_of_work)

    assert fake_remote.operations() == ["delete", "create"]
    assert ("delete", old_id) in fake_remote.calls
    new_id = fake_remote.live_by_key()["A"].remote_id
    assert fake_storage.recorded.load(SUBJECT.subject_id)["A"].remote_id == new_id
    assert fake_storage.fingerprints.get(SUBJECT.subject_id, "A") == fingerprint("y")


def test_failed_cycle_keeps_previous_state(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)
    before = fake_storage.recorded.load(SUBJECT.subject_id)
    fake_remote.create_error = RuntimeError("quota exceeded")

    with pytest.raises(RemoteCallFailure):
        _apply(_declared(A="y"), fake_remote, fake_unit_of_work)

    assert fake_storage.commits == 1
    assert fake_storage.rollbacks == 1
    assert fake_storage.recorded.load(SUBJECT.subject_id) == before
    assert fake_storage.fingerprints.get(SUBJECT.subject_id, "A") == fingerprint("x")


def test_externally_deleted_entry_is_recreated(
    fake_remote: FakeRemote,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)
    fake_remote.entries.clear()
    fake_remote.calls.clear()

    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)

    assert fake_remote.operations() == ["delete", "create"]
    assert set(fake_remote.live_by_key()) == {"A"}


def test_plan_does_not_mutate_anything(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    plan = plan_environment(
        _declared(A="x"), remote=fake_remote, unit_of_work_factory=fake_unit_of_work
    )

    assert set(plan.to_add) == {"A"}
    assert fake_remote.operations() == []
    assert fake_storage.commits == 0


def test_refresh_forgets_vanished_entries(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x", B="y"), fake_remote, fake_unit_of_work)
    fake_remote.entries.pop(fake_remote.live_by_key()["B"].remote_id)

    refreshed = refresh_environment(
        SUBJECT, remote=fake_remote, unit_of_work_factory=fake_unit_of_work
    )

    assert set(refreshed) == {"A"}
    assert set(fake_storage.recorded.load(SUBJECT.subject_id)) == {"A"}
    assert fake_storage.fingerprints.get(SUBJECT.subject_id, "B") is None


def test_destroy_removes_every_recorded_entry(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x", B="y"), fake_remote, fake_unit_of_work)
    (unmanaged,) = fake_remote.seed(make_entry("C", "manual"))

    result = destroy_environment(
        SUBJECT, remote=fake_remote, unit_of_work_factory=fake_unit_of_work
    )

    assert set(result.plan.to_remove) == {"A", "B"}
    assert list(fake_remote.entries) == [unmanaged.remote_id]
    assert fake_storage.recorded.load(SUBJECT.subject_id) == {}
    assert fake_storage.fingerprints.digests == {}


def test_apply_against_sqlite_storage(
    fake_remote: FakeRemote,
    sqlite_unit_of_work: Callable[[], SqlAlchemyReconciliationUnitOfWork],
) -> None:
    apply_environment(
        _declared(A="x"),
        remote=fake_remote,
        unit_of_work_factory=sqlite_unit_of_work,
        settling=NO_SETTLING,
    )
    fake_remote.calls.clear()

    plan = plan_environment(
        _declared(A="x"), remote=fake_remote, unit_of_work_factory=sqlite_unit_of_work
    )

    assert plan.is_empty
    assert set(plan.unchanged) == {"A"}


def test_subject_lock_is_shared_per_subject() -> None:
    assert subject_lock(SUBJECT) is subject_lock(Subject(project_id="prj_test", team_id="team_test"))
    assert subject_lock(SUBJECT) is not subject_lock(Subject(project_id="prj_other"))


def _unscoped() -> DeclaredEnvironment:
    return DeclaredEnvironment(subject=SUBJECT, entries={"A": make_entry("A", "x", targets=())})


def test_invalid_declaration_is_rejected_before_apply_reaches_the_remote(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    with pytest.raises(EntryValidationError):
        _apply(_unscoped(), fake_remote, fake_unit_of_work)

    assert fake_remote.calls == []
    assert fake_storage.commits == 0


def test_invalid_declaration_is_rejected_before_plan_reaches_the_remote(
    fake_remote: FakeRemote,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    with pytest.raises(EntryValidationError):
        plan_environment(_unscoped(), remote=fake_remote, unit_of_work_factory=fake_unit_of_work)

    assert fake_remote.calls == []


def test_apply_checks_the_subject_before_listing(
    fake_remote: FakeRemote,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)

    assert fake_remote.calls[:2] == [("ensure_subject", SUBJECT), ("list", SUBJECT)]


def test_apply_against_missing_subject_keeps_recorded_state(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x"), fake_remote, fake_unit_of_work)
    fake_remote.missing_subject = True

    with pytest.raises(SubjectNotFoundError):
        _apply(_declared(A="y"), fake_remote, fake_unit_of_work)

    assert set(fake_storage.recorded.load(SUBJECT.subject_id)) == {"A"}
    assert fake_storage.commits == 1


def test_refresh_forgets_everything_when_subject_is_gone(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x", B="y"), fake_remote, fake_unit_of_work)
    fake_remote.missing_subject = True

    refreshed = refresh_environment(
        SUBJECT, remote=fake_remote, unit_of_work_factory=fake_unit_of_work
    )

    assert refreshed == {}
    assert fake_storage.recorded.load(SUBJECT.subject_id) == {}
    assert fake_storage.fingerprints.digests == {}
    assert fake_storage.commits == 2


def test_destroy_forgets_everything_when_subject_is_gone(
    fake_remote: FakeRemote,
    fake_storage: FakeStorage,
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
) -> None:
    _apply(_declared(A="x", B="y"), fake_remote, fake_unit_of_work)
    fake_remote.missing_subject = True
    fake_remote.calls.clear()

    result = destroy_environment(
        SUBJECT, remote=fake_remote, unit_of_work_factory=fake_unit_of_work
    )

    assert set(result.plan.to_remove) == {"A", "B"}
    assert result.applied == {}
    assert fake_remote.operations() == []
    assert fake_storage.recorded.load(SUBJECT.subject_id) == {}
    assert fake_storage.fingerprints.digests == {}


def test_subject_locks_are_released_when_unused() -> None:
    subject = Subject(project_id="prj_transient")
    held = subject_lock(subject)
    assert subject.subject_id in app._SUBJECT_LOCKS

    del held
    gc.collect()

    assert subject.subject_id not in app._SUBJECT_LOCKS
