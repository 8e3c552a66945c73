"""Error taxonomy for reconciliation cycles."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ReconciliationError(RuntimeError):
    """Base class for failures that abort a reconciliation cycle."""


class EntryValidationError(ReconciliationError):
    """Raised when declared entries violate an invariant; no remote call is made."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = tuple(problems)
        super().__init__("Invalid declared entries: " + "; ".join(self.problems))


class RemoteEntryNotFoundError(ReconciliationError):
    """Raised by remote adapters when the addressed entry does not exist."""

    def __init__(self, remote_id: str) -> None:
        super().__init__(f"Entry {remote_id} not found")
        self.remote_id = remote_id


class SubjectNotFoundError(ReconciliationError):
    """Raised when the project (or team) addressed by a subject does not exist."""


class RemoteCallFailure(ReconciliationError):
    """A remote mutation failed; the cycle stops and nothing is assumed committed."""

    def __init__(
        self,
        operation: str,
        *,
        key: str | None = None,
        remote_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.key = key
        self.remote_id = remote_id
        target = key or "<batch>"
        if remote_id:
            target = f"{target} ({remote_id})"
        message = f"Could not {operation} environment variable {target}"
        if cause is not None:
            message = f"{message}, unexpected error: {cause}"
        super().__init__(message)


class ReconciliationCancelled(ReconciliationError):
    """Raised when a cancellation request is honoured between remote calls."""


class SettlingTimeout(ReconciliationError):
    """Raised when deleted entries are still listed after the settling budget."""
