"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Target(StrEnum):
    """Built-in deployment environments an entry can be attached to."""

    PRODUCTION = "production"
    PREVIEW = "preview"
    DEVELOPMENT = "development"


class EntryType(StrEnum):
    """Storage class the control plane reports for an entry.

    Only ``sensitive`` and ``encrypted`` are ever written by envsync; the other
    members show up when reading projects that were edited by hand.
    """

    PLAIN = "plain"
    ENCRYPTED = "encrypted"
    SENSITIVE = "sensitive"
    SECRET = "secret"
    SYSTEM = "system"
