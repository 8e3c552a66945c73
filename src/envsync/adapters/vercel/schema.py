"""Pydantic models describing the Vercel environment variable payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _as_list(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class VercelBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EnvironmentVariablePayload(VercelBaseModel):
    id: str
    key: str
    value: str | None = None
    type: str = "encrypted"
    target: list[str] = Field(default_factory=list)
    custom_environment_ids: list[str] = Field(default_factory=list, alias="customEnvironmentIds")
    git_branch: str | None = Field(default=None, alias="gitBranch")
    comment: str | None = None
    decrypted: bool | None = None

    _normalize_target = field_validator("target", "custom_environment_ids", mode="before")(
        _as_list
    )
    _normalize_git_branch = field_validator("git_branch", mode="before")(_blank_to_none)


class EnvironmentVariableListResponse(VercelBaseModel):
    envs: list[EnvironmentVariablePayload]


class CreateEnvironmentVariableRequest(VercelBaseModel):
    key: str
    value: str
    type: str
    target: list[str] = Field(default_factory=list)
    custom_environment_ids: list[str] = Field(default_factory=list, alias="customEnvironmentIds")
    git_branch: str | None = Field(default=None, alias="gitBranch")
    comment: str | None = None

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorPayload(VercelBaseModel):
    code: str | None = None
    message: str = "unknown error"
    key: str | None = None


class ErrorResponse(VercelBaseModel):
    error: ErrorPayload


class FailedEnvironmentVariable(VercelBaseModel):
    error: ErrorPayload


class CreateEnvironmentVariablesResponse(VercelBaseModel):
    created: list[EnvironmentVariablePayload] = Field(default_factory=list)
    failed: list[FailedEnvironmentVariable] = Field(default_factory=list)

    @field_validator("created", mode="before")
    @classmethod
    def _single_or_many(cls, value: object) -> object:
        # A single created variable comes back as an object instead of a list.
        if isinstance(value, Mapping):
            return [cast(Mapping[str, object], value)]
        return _as_list(value)


class TeamPayload(VercelBaseModel):
    id: str
    sensitive_environment_variable_policy: str | None = Field(
        default=None, alias="sensitiveEnvironmentVariablePolicy"
    )


class ProjectPayload(VercelBaseModel):
    id: str
    name: str | None = None
