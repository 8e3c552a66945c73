"""Translate Vercel payloads into domain entries and back."""

from __future__ import annotations

from logging import getLogger

from envsync.domain.model import Entry, EntryType, Target

from .schema import CreateEnvironmentVariableRequest, EnvironmentVariablePayload

log = getLogger(__name__)

_TARGETS = {target.value: target for target in Target}


def parse_entry(payload: EnvironmentVariablePayload) -> Entry:
    """Build the live view of one variable.

    Sensitive values are never readable, so whatever the API put in ``value``
    (usually an empty string) is dropped.
    """

    sensitive = payload.type == EntryType.SENSITIVE
    targets: set[Target] = set()
    for name in payload.target:
        target = _TARGETS.get(name)
        if target is None:
            log.debug("Ignoring unknown target %s on %s", name, payload.key)
            continue
        targets.add(target)
    return Entry(
        key=payload.key,
        remote_id=payload.id,
        value=None if sensitive else payload.value,
        targets=frozenset(targets),
        custom_environment_ids=frozenset(payload.custom_environment_ids),
        git_branch=payload.git_branch,
        sensitive=sensitive,
        comment=payload.comment,
        decrypted=payload.decrypted,
    )


def build_create_request(entry: Entry) -> CreateEnvironmentVariableRequest:
    return CreateEnvironmentVariableRequest(
        key=entry.key,
        value=entry.value or "",
        type=entry.entry_type.value,
        target=sorted(target.value for target in entry.targets),
        custom_environment_ids=sorted(entry.custom_environment_ids),
        git_branch=entry.git_branch,
        comment=entry.comment,
    )
