"""Turn an operation plan into ordered remote calls.

Deletions go first, one call each. Creations go out in a single batch, after a
settling step when something was deleted in the same cycle: the control plane
is eventually consistent and may reject or drop a create for a key that was
deleted a moment ago.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from .errors import (
    ReconciliationCancelled,
    RemoteCallFailure,
    RemoteEntryNotFoundError,
    SettlingTimeout,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from envsync.domain.model import Entry, Subject
    from envsync.domain.ports import RemoteEntrySet

    from .plan import OperationPlan

log = getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 5.0


class SettlingPolicy(Protocol):
    """Wait until the deletions of a cycle are visible before creating entries."""

    def __call__(self, subject: Subject, removed: Mapping[str, Entry]) -> None: ...


@dataclass(slots=True)
class FixedDelaySettling:
    """Sleep for a fixed period; the observed safe value is five seconds."""

    seconds: float = DEFAULT_SETTLE_SECONDS
    sleep: Callable[[float], None] = time.sleep

    def __call__(self, subject: Subject, removed: Mapping[str, Entry]) -> None:
        if self.seconds <= 0:
            return
        log.info(
            "Waiting %.1fs for %s deletions to settle on %s", self.seconds, len(removed), subject
        )
        self.sleep(self.seconds)


@dataclass(slots=True)
class ConsistencyProbeSettling:
    """Poll the live listing until every deleted identifier is gone."""

    remote: RemoteEntrySet
    interval: float = 1.0
    timeout: float = 30.0
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def __call__(self, subject: Subject, removed: Mapping[str, Entry]) -> None:
        deleted = {entry.remote_id for entry in removed.values() if entry.remote_id}
        if not deleted:
            return
        started = self.clock()
        while True:
            pending = deleted & {entry.remote_id for entry in self.remote.list(subject)}
            if not pending:
                return
            if self.clock() - started >= self.timeout:
                raise SettlingTimeout(
                    f"Deleted entries still listed on {subject} after {self.timeout:.1f}s: "
                    + ", ".join(sorted(pending))
                )
            log.debug("Still waiting for %s on %s", sorted(pending), subject)
            self.sleep(self.interval)


def never_cancelled() -> bool:
    return False


@dataclass(slots=True)
class ChangeSequencer:
    """Apply a plan: deletions, optional settling, one batched create."""

    remote: RemoteEntrySet
    settle: SettlingPolicy = field(default_factory=FixedDelaySettling)
    cancelled: Callable[[], bool] = never_cancelled

    def __call__(self, plan: OperationPlan) -> dict[str, Entry]:
        """Return the applied entries (created plus unchanged), keyed by ``key``.

        Any failure other than "not found" on delete aborts the sequence;
        entries not processed yet are left alone remotely.
        """

        self._remove(plan)
        created = self._create(plan)
        applied = dict(plan.unchanged)
        applied.update(created)
        return applied

    def _remove(self, plan: OperationPlan) -> None:
        subject = plan.subject
        for key in sorted(plan.to_remove):
            entry = plan.to_remove[key]
            self._raise_if_cancelled("delete", key)
            if not entry.remote_id:
                log.debug("Skipping delete of %s: never created remotely", key)
                continue
            try:
                self.remote.delete(subject, entry.remote_id)
            except RemoteEntryNotFoundError:
                log.info("Environment variable %s (%s) already absent", key, entry.remote_id)
                continue
            except Exception as exc:
                raise RemoteCallFailure(
                    "remove", key=key, remote_id=entry.remote_id, cause=exc
                ) from exc
            log.info(
                "Deleted environment variable: subject=%s, key=%s, environment_id=%s",
                subject,
                key,
                entry.remote_id,
            )

    def _create(self, plan: OperationPlan) -> dict[str, Entry]:
        if not plan.to_add:
            return {}
        subject = plan.subject
        if plan.requires_settling:
            self._raise_if_cancelled("settle", None)
            self.settle(subject, plan.to_remove)
        self._raise_if_cancelled("create", None)

        keys = sorted(plan.to_add)
        try:
            created = self.remote.create_batch(subject, [plan.to_add[key] for key in keys])
        except Exception as exc:
            raise RemoteCallFailure("create", key=", ".join(keys), cause=exc) from exc

        result: dict[str, Entry] = {}
        for entry in created:
            declared = plan.to_add.get(entry.key)
            if declared is None:
                log.warning("Create response for %s returned unexpected key %s", subject, entry.key)
                continue
            result[entry.key] = declared.with_remote_fields(entry)
        missing = [key for key in keys if key not in result]
        if missing:
            raise RemoteCallFailure(
                "create",
                key=", ".join(missing),
                cause=RuntimeError("missing from the create response"),
            )
        log.info("Created %s environment variables on %s", len(result), subject)
        return result

    def _raise_if_cancelled(self, step: str, key: str | None) -> None:
        if self.cancelled():
            target = f" {key}" if key else ""
            raise ReconciliationCancelled(f"Cancelled before {step}{target} on the remote side")
