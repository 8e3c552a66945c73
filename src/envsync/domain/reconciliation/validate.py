"""Checks on declared entries that run before any remote call."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from envsync.domain.model import MAX_COMMENT_LENGTH

from .errors import EntryValidationError

if TYPE_CHECKING:
    from envsync.domain.model import EntrySet, Subject
    from envsync.domain.ports import SensitivePolicyReader

log = getLogger(__name__)


def validate_declared(declared: EntrySet) -> None:
    """Raise ``EntryValidationError`` listing every invalid declared entry."""

    problems: list[str] = []
    for name in sorted(declared):
        entry = declared[name]
        if not name.strip():
            problems.append("entry with an empty key")
            continue
        if entry.key != name:
            problems.append(f"{name}: declared under a different key ({entry.key})")
        if entry.value is None:
            problems.append(f"{name}: value is required")
        if not entry.has_scope:
            problems.append(f"{name}: at least one of target or custom_environment_ids must be set")
        if entry.comment is not None and len(entry.comment) > MAX_COMMENT_LENGTH:
            problems.append(f"{name}: comment exceeds {MAX_COMMENT_LENGTH} characters")
    if problems:
        raise EntryValidationError(problems)


def check_sensitive_policy(
    subject: Subject,
    declared: EntrySet,
    prior: EntrySet,
    policy: SensitivePolicyReader,
) -> None:
    """Reject new entries explicitly marked non-sensitive when the team forbids it.

    Only entries that do not exist yet are checked, and only when one of them
    opts out of sensitivity; the policy lookup is skipped otherwise.
    """

    opted_out = sorted(
        key for key, entry in declared.items() if key not in prior and entry.sensitive is False
    )
    if not opted_out:
        return
    if not policy.enforces_sensitive(subject):
        return
    log.info("Team policy for %s forces sensitive entries, rejecting %s", subject, opted_out)
    raise EntryValidationError(
        [
            f"{key}: this team has a policy that forces all environment variables to be "
            "sensitive; remove the sensitive field or set it to true"
            for key in opted_out
        ]
    )
