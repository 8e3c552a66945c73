from __future__ import annotations

from envsync.domain.model import Target
from envsync.domain.reconciliation import DriftDetector, fingerprint, reconcile
from tests.support.fakes import SUBJECT, InMemoryFingerprintStore, make_entry


def _detector(**values: str) -> DriftDetector:
    store = InMemoryFingerprintStore()
    for key, value in values.items():
        store.set(SUBJECT.subject_id, key, fingerprint(value))
    return DriftDetector(store=store)


def test_first_apply_adds_every_declared_entry() -> None:
    declared = {"A": make_entry("A", "x")}

    plan = reconcile(SUBJECT, declared, {}, [], drift=_detector())

    assert set(plan.to_add) == {"A"}
    assert not plan.to_remove
    assert not plan.unchanged
    assert plan.reasons["A"] == "new"
    assert plan.fingerprint_writes == {"A": fingerprint("x")}
    assert not plan.requires_settling


def test_matching_fingerprint_keeps_entry_and_its_identifier() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r1", sensitive=True, decrypted=False)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.is_empty
    assert set(plan.unchanged) == {"A"}
    assert plan.unchanged["A"].remote_id == "r1"
    assert plan.unchanged["A"].value == "x"
    assert not plan.fingerprint_writes


def test_key_removed_from_configuration_is_only_removed() -> None:
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r1")]

    plan = reconcile(SUBJECT, {}, prior, live, drift=_detector(A="x"))

    assert set(plan.to_remove) == {"A"}
    assert not plan.to_add
    assert not plan.unchanged
    assert plan.fingerprint_clears == frozenset({"A"})
    assert plan.reasons["A"] == "removed_from_configuration"


def test_changed_value_replaces_entry() -> None:
    declared = {"A": make_entry("A", "y")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r1", sensitive=True, decrypted=False)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.to_remove["A"].remote_id == "r1"
    assert plan.to_add["A"].value == "y"
    assert "A" not in plan.unchanged
    assert plan.replaced == frozenset({"A"})
    assert plan.reasons["A"] == "value_changed"
    assert plan.fingerprint_writes["A"] == fingerprint("y")
    assert plan.requires_settling


def test_external_recreation_rebinds_instead_of_double_delete() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r9", sensitive=True, decrypted=False)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.is_empty
    assert plan.unchanged["A"].remote_id == "r9"


def test_external_recreation_with_new_value_deletes_the_live_entry() -> None:
    declared = {"A": make_entry("A", "y")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r9", sensitive=True, decrypted=False)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.to_remove["A"].remote_id == "r9"
    assert set(plan.to_add) == {"A"}


def test_missing_fingerprint_forces_replacement() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", None, remote_id="r1", sensitive=True, decrypted=False)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector())

    assert plan.replaced == frozenset({"A"})
    assert plan.reasons["A"] == "value_changed"


def test_entry_missing_remotely_is_recreated() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}

    plan = reconcile(SUBJECT, declared, prior, [], drift=_detector(A="x"))

    assert plan.replaced == frozenset({"A"})
    assert plan.reasons["A"] == "missing_remotely"


def test_same_key_with_other_scope_forces_replacement() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", "x", remote_id="r2", targets=(Target.PREVIEW,), decrypted=True)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.to_remove["A"].remote_id == "r1"
    assert plan.reasons["A"] == "remote_id_changed"


def test_declared_scope_change_replaces_entry() -> None:
    declared = {"A": make_entry("A", "x", targets=(Target.PRODUCTION, Target.PREVIEW))}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", "x", remote_id="r1", decrypted=True)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.reasons["A"] == "scope_changed"


def test_remote_edit_of_readable_value_is_detected() -> None:
    declared = {"A": make_entry("A", "x")}
    prior = {"A": make_entry("A", None, remote_id="r1")}
    live = [make_entry("A", "edited", remote_id="r1", decrypted=True)]

    plan = reconcile(SUBJECT, declared, prior, live, drift=_detector(A="x"))

    assert plan.reasons["A"] == "value_changed_remotely"


def test_declared_equal_to_prior_leaves_everything_unchanged() -> None:
    keys = ("A", "B", "C")
    declared = {key: make_entry(key, f"value-{key}") for key in keys}
    prior = {key: make_entry(key, None, remote_id=f"r-{key}") for key in keys}
    live = [make_entry(key, f"value-{key}", remote_id=f"r-{key}", decrypted=True) for key in keys]
    drift = _detector(**{key: f"value-{key}" for key in keys})

    plan = reconcile(SUBJECT, declared, prior, live, drift=drift)

    assert not plan.to_add
    assert not plan.to_remove
    assert set(plan.unchanged) == set(prior)


def test_reconcile_is_idempotent_and_order_independent() -> None:
    declared = {
        "A": make_entry("A", "x"),
        "B": make_entry("B", "new"),
        "D": make_entry("D", "d"),
    }
    prior = {
        "A": make_entry("A", None, remote_id="r1"),
        "B": make_entry("B", None, remote_id="r2"),
        "C": make_entry("C", None, remote_id="r3"),
    }
    live = [
        make_entry("A", None, remote_id="r1", sensitive=True, decrypted=False),
        make_entry("B", None, remote_id="r2", sensitive=True, decrypted=False),
        make_entry("C", None, remote_id="r3", sensitive=True, decrypted=False),
    ]
    drift = _detector(A="x", B="old", C="c")

    first = reconcile(SUBJECT, declared, prior, live, drift=drift)
    second = reconcile(SUBJECT, declared, prior, list(reversed(live)), drift=drift)

    assert first == second
    assert set(first.unchanged) == {"A"}
    assert set(first.to_remove) == {"B", "C"}
    assert set(first.to_add) == {"B", "D"}
