"""Change detection for write-only values.

The control plane never returns sensitive values in plaintext, so equality
cannot be checked by comparing contents. Instead a SHA-256 fingerprint of the
declared value is stored after every create and compared on the next cycle.
The digest covers the exact UTF-8 bytes: trailing newlines or a different
unicode form are real drift.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from envsync.domain.model import Entry
    from envsync.domain.ports import FingerprintReader


def fingerprint(value: str) -> bytes:
    """Return the stored digest form of ``value`` (lowercase hex, ASCII)."""

    return hashlib.sha256(value.encode("utf-8")).hexdigest().encode("ascii")


@dataclass(slots=True)
class DriftDetector:
    """Decide whether declared entries differ from what the remote side holds."""

    store: FingerprintReader

    def is_changed(self, subject_id: str, key: str, candidate: str) -> bool:
        """Return ``True`` unless a stored digest exists and matches ``candidate``.

        A missing digest counts as changed: an unknown prior value forces
        replacement instead of being trusted.
        """

        stored = self.store.get(subject_id, key)
        if not stored:
            return True
        return not hmac.compare_digest(stored, fingerprint(candidate))

    def attributes_changed(self, declared: Entry, live: Entry) -> str | None:
        """Return why ``live`` no longer matches ``declared``, or ``None``."""

        if declared.match_key != live.match_key:
            return "scope_changed"
        if declared.git_branch != live.git_branch:
            return "git_branch_changed"
        if declared.sensitive is not None and bool(live.sensitive) != declared.sensitive:
            return "sensitivity_changed"
        if declared.comment is not None and (live.comment or "") != declared.comment:
            return "comment_changed"
        if live.is_readable and live.value != declared.value:
            return "value_changed_remotely"
        return None
