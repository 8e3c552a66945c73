"""HTTP client for the Vercel project environment API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from envsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from envsync.config.vercel import VercelConfig, get_vercel_config
from envsync.domain.reconciliation.errors import RemoteEntryNotFoundError, SubjectNotFoundError

from .schema import (
    CreateEnvironmentVariablesResponse,
    EnvironmentVariableListResponse,
    ErrorResponse,
    ProjectPayload,
    TeamPayload,
)
from .translator import build_create_request, parse_entry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import httpx

    from envsync.domain.model import Entry, Subject
    from envsync.domain.ports import RemoteEntrySet, SensitivePolicyReader

log = getLogger(__name__)

SENSITIVE_POLICY_ON = "on"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class VercelAPIError(RuntimeError):
    """Raised when the Vercel API answers with an error status."""

    def __init__(self, message: str, *, status_code: int, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404  # noqa: PLR2004


@dataclass(slots=True)
class VercelEntrySet:
    """Remote entry set and sensitivity policy backed by the Vercel REST API.

    Every public call runs its own event loop and client, the same way the
    rest of the synchronous reconciliation flow expects.
    """

    config: VercelConfig = field(default_factory=get_vercel_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def list(self, subject: Subject) -> list[Entry]:
        return asyncio.run(self._list_async(subject))

    def create_batch(self, subject: Subject, entries: Sequence[Entry]) -> list[Entry]:
        if not entries:
            return []
        return asyncio.run(self._create_batch_async(subject, entries))

    def delete(self, subject: Subject, remote_id: str) -> None:
        asyncio.run(self._delete_async(subject, remote_id))

    def enforces_sensitive(self, subject: Subject) -> bool:
        team_id = self._team_id(subject)
        if team_id is None:
            return False
        return asyncio.run(self._team_policy_async(team_id)) == SENSITIVE_POLICY_ON

    def ensure_subject(self, subject: Subject) -> None:
        """Raise ``SubjectNotFoundError`` unless the project exists for the team."""

        asyncio.run(self._project_async(subject))

    def _resilience(self) -> ResilienceConfig:
        base = self.config.resilience
        headers = dict(base.default_headers or {})
        headers["Authorization"] = f"Bearer {self.config.api_token}"
        return replace(base, default_headers=headers)

    def _team_id(self, subject: Subject) -> str | None:
        return subject.team_id or self.config.default_team_id

    def _params(self, subject: Subject, **extra: str) -> dict[str, str]:
        params = dict(extra)
        team_id = self._team_id(subject)
        if team_id:
            params["teamId"] = team_id
        return params

    async def _list_async(self, subject: Subject) -> list[Entry]:
        url = f"/v10/projects/{subject.project_id}/env"
        async with self.client_factory(self._resilience()) as client:
            response = await client.get(url, params=self._params(subject, decrypt="true"))
        try:
            _raise_for_error(response)
        except VercelAPIError as exc:
            if exc.not_found:
                raise SubjectNotFoundError(
                    f"Could not find project {subject.project_id}; check project and team ids"
                ) from exc
            raise
        payload = EnvironmentVariableListResponse.model_validate(response.json())
        entries = [parse_entry(item) for item in payload.envs]
        log.debug("Listed %s environment variables for %s", len(entries), subject)
        return entries

    async def _create_batch_async(self, subject: Subject, entries: Sequence[Entry]) -> list[Entry]:
        url = f"/v10/projects/{subject.project_id}/env"
        body = [build_create_request(entry).to_payload() for entry in entries]
        async with self.client_factory(self._resilience()) as client:
            response = await client.post(url, params=self._params(subject), json=body)
        _raise_for_error(response)
        try:
            payload = CreateEnvironmentVariablesResponse.model_validate(response.json())
        except ValidationError as exc:
            raise VercelAPIError(
                "Unexpected create response payload", status_code=response.status_code
            ) from exc
        if payload.failed:
            reasons = "; ".join(
                f"{item.error.key or '?'}: {item.error.message}" for item in payload.failed
            )
            raise VercelAPIError(
                f"Failed to create environment variables: {reasons}",
                status_code=response.status_code,
                code=payload.failed[0].error.code,
            )
        return [parse_entry(item) for item in payload.created]

    async def _delete_async(self, subject: Subject, remote_id: str) -> None:
        url = f"/v9/projects/{subject.project_id}/env/{remote_id}"
        async with self.client_factory(self._resilience()) as client:
            response = await client.delete(url, params=self._params(subject))
        try:
            _raise_for_error(response)
        except VercelAPIError as exc:
            if exc.not_found:
                raise RemoteEntryNotFoundError(remote_id) from exc
            raise

    async def _team_policy_async(self, team_id: str) -> str | None:
        async with self.client_factory(self._resilience()) as client:
            response = await client.get(f"/v2/teams/{team_id}")
        _raise_for_error(response)
        team = TeamPayload.model_validate(response.json())
        return team.sensitive_environment_variable_policy

    async def _project_async(self, subject: Subject) -> ProjectPayload:
        url = f"/v9/projects/{subject.project_id}"
        async with self.client_factory(self._resilience()) as client:
            response = await client.get(url, params=self._params(subject))
        try:
            _raise_for_error(response)
        except VercelAPIError as exc:
            if exc.not_found:
                raise SubjectNotFoundError(
                    f"Could not find project {subject.project_id}; check project and team ids"
                ) from exc
            raise
        return ProjectPayload.model_validate(response.json())


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = response.reason_phrase or "request failed"
    code: str | None = None
    try:
        error = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        pass
    else:
        message = error.error.message
        code = error.error.code
    log.error(f"Vercel API error {response.status_code} ({code}): {message}")
    raise VercelAPIError(message, status_code=response.status_code, code=code)


if TYPE_CHECKING:
    _remote_check: RemoteEntrySet = VercelEntrySet()
    _policy_check: SensitivePolicyReader = VercelEntrySet()
