"""Load declared environment entries from a TOML file.

Example document::

    project_id = "prj_123"
    team_id = "team_456"

    [variables.DATABASE_URL]
    value_env = "PROD_DATABASE_URL"
    target = ["production"]
    sensitive = true

    [variables.FEATURE_FLAG]
    value = "on"
    target = ["preview", "development"]
    comment = "toggled per branch"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from envsync.domain.model import Entry, Subject, Target
from envsync.domain.reconciliation import EntryValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)


def _as_list(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class DeclaredVariable(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    value: str | None = None
    value_env: str | None = None
    target: list[Target] = Field(default_factory=list[Target])
    custom_environment_ids: list[str] = Field(default_factory=list[str])
    git_branch: str | None = None
    sensitive: bool | None = None
    comment: str | None = None

    _normalize_lists = field_validator("target", "custom_environment_ids", mode="before")(
        _as_list
    )


class DeclaredDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: str
    team_id: str | None = None
    variables: dict[str, DeclaredVariable] = Field(default_factory=dict[str, DeclaredVariable])


@dataclass(frozen=True, slots=True)
class DeclaredEnvironment:
    """A subject together with the entries declared for it."""

    subject: Subject
    entries: dict[str, Entry]


def load_declared(
    path: str | Path,
    *,
    environ: Mapping[str, str] | None = None,
) -> DeclaredEnvironment:
    """Read ``path`` and return its declared entries.

    Raises ``EntryValidationError`` for unreadable files, malformed documents,
    and ``value_env`` references that are not set.
    """

    file_path = Path(path)
    try:
        with file_path.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise EntryValidationError([f"{file_path}: file not found"]) from exc
    except tomllib.TOMLDecodeError as exc:
        raise EntryValidationError([f"{file_path}: {exc}"]) from exc
    declared = parse_declared(document, environ=environ)
    log.debug("Loaded %s declared entries from %s", len(declared.entries), file_path)
    return declared


def parse_declared(
    document: Mapping[str, object],
    *,
    environ: Mapping[str, str] | None = None,
) -> DeclaredEnvironment:
    try:
        parsed = DeclaredDocument.model_validate(document)
    except ValidationError as exc:
        raise EntryValidationError(
            [
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            ]
        ) from exc

    env = os.environ if environ is None else environ
    problems: list[str] = []
    entries: dict[str, Entry] = {}
    for key in sorted(parsed.variables):
        variable = parsed.variables[key]
        value = _resolve_value(key, variable, env, problems)
        entries[key] = Entry(
            key=key,
            value=value,
            targets=frozenset(variable.target),
            custom_environment_ids=frozenset(variable.custom_environment_ids),
            git_branch=variable.git_branch or None,
            sensitive=variable.sensitive,
            comment=variable.comment,
        )
    if problems:
        raise EntryValidationError(problems)
    return DeclaredEnvironment(
        subject=Subject(project_id=parsed.project_id, team_id=parsed.team_id or None),
        entries=entries,
    )


def _resolve_value(
    key: str,
    variable: DeclaredVariable,
    env: Mapping[str, str],
    problems: list[str],
) -> str | None:
    if variable.value is not None and variable.value_env is not None:
        problems.append(f"{key}: set either value or value_env, not both")
        return None
    if variable.value_env is None:
        return variable.value
    value = env.get(variable.value_env)
    if value is None:
        problems.append(f"{key}: environment variable {variable.value_env} is not set")
    return value
