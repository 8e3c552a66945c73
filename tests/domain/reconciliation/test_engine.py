from __future__ import annotations

import logging

import pytest

from envsync.domain.reconciliation import (
    ChangeSequencer,
    DriftDetector,
    EntryValidationError,
    FixedDelaySettling,
    ReconciliationEngine,
    apply_fingerprint_updates,
    fingerprint,
)
from tests.support.fakes import (
    SUBJECT,
    FakePolicy,
    FakeRemote,
    InMemoryFingerprintStore,
    make_entry,
)


def _engine(
    remote: FakeRemote,
    store: InMemoryFingerprintStore,
    policy: FakePolicy | None = None,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        drift=DriftDetector(store=store),
        sequence=ChangeSequencer(remote=remote, settle=FixedDelaySettling(seconds=0)),
        policy=policy,
    )


def test_run_cycle_applies_plan_and_strips_values_from_recorded_state() -> None:
    remote = FakeRemote()
    store = InMemoryFingerprintStore()
    declared = {"A": make_entry("A", "x", sensitive=True), "B": make_entry("B", "y")}

    result = _engine(remote, store).run_cycle(SUBJECT, declared, {}, remote.list(SUBJECT))

    assert set(result.applied) == {"A", "B"}
    assert result.applied["A"].value == "x"
    assert all(entry.value is None for entry in result.recorded.values())
    assert result.recorded["A"].remote_id == remote.live_by_key()["A"].remote_id
    assert store.digests == {}


def test_second_cycle_is_a_no_op_once_fingerprints_are_stored() -> None:
    remote = FakeRemote()
    store = InMemoryFingerprintStore()
    declared = {"A": make_entry("A", "x", sensitive=True)}
    engine = _engine(remote, store)

    first = engine.run_cycle(SUBJECT, declared, {}, remote.list(SUBJECT))
    apply_fingerprint_updates(first.plan, store)
    remote.calls.clear()
    second = engine.run_cycle(SUBJECT, declared, first.recorded, remote.list(SUBJECT))

    assert second.plan.is_empty
    assert remote.operations() == []
    assert second.recorded == first.recorded


def test_apply_fingerprint_updates_writes_and_clears() -> None:
    remote = FakeRemote()
    store = InMemoryFingerprintStore()
    store.set(SUBJECT.subject_id, "OLD", fingerprint("old"))
    (old,) = remote.seed(make_entry("OLD", None))
    engine = _engine(remote, store)

    result = engine.run_cycle(
        SUBJECT,
        {"NEW": make_entry("NEW", "n")},
        {"OLD": old.without_value()},
        remote.list(SUBJECT),
    )
    apply_fingerprint_updates(result.plan, store)

    assert store.digests == {(SUBJECT.subject_id, "NEW"): fingerprint("n")}


def test_validation_runs_before_any_remote_call() -> None:
    remote = FakeRemote()

    with pytest.raises(EntryValidationError):
        _engine(remote, InMemoryFingerprintStore()).run_cycle(
            SUBJECT, {"A": make_entry("A", None)}, {}, []
        )

    assert remote.calls == []


def test_policy_is_consulted_during_planning() -> None:
    remote = FakeRemote()
    policy = FakePolicy(enforced=True)
    engine = _engine(remote, InMemoryFingerprintStore(), policy)

    with pytest.raises(EntryValidationError):
        engine.plan_cycle(SUBJECT, {"A": make_entry("A", "x", sensitive=False)}, {}, [])

    assert policy.calls == 1
    assert remote.operations() == []


def test_ambiguity_is_logged_as_warning(caplog: pytest.LogCaptureFixture) -> None:
    remote = FakeRemote()
    live = remote.seed(make_entry("A", None), make_entry("A", None))
    store = InMemoryFingerprintStore()
    store.set(SUBJECT.subject_id, "A", fingerprint("x"))
    prior = {"A": make_entry("A", None, remote_id="gone")}

    with caplog.at_level(logging.WARNING):
        plan = _engine(remote, store).plan_cycle(SUBJECT, {"A": make_entry("A", "x")}, prior, live)

    assert len(plan.notes) == 1
    assert "ambiguous" in caplog.text
