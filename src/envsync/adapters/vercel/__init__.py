"""Public interface for the Vercel adapter."""

from __future__ import annotations

from .client import VercelAPIError, VercelEntrySet
from .schema import (
    CreateEnvironmentVariableRequest,
    CreateEnvironmentVariablesResponse,
    EnvironmentVariableListResponse,
    EnvironmentVariablePayload,
)
from .translator import build_create_request, parse_entry

__all__ = [
    "CreateEnvironmentVariableRequest",
    "CreateEnvironmentVariablesResponse",
    "EnvironmentVariableListResponse",
    "EnvironmentVariablePayload",
    "VercelAPIError",
    "VercelEntrySet",
    "build_create_request",
    "parse_entry",
]
