"""Settling defaults for the window between deletes and creates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .env import optional_env_var, optional_float_env_var
from .errors import ConfigurationError

type SettleStrategy = Literal["delay", "probe"]

DEFAULT_SETTLE_SECONDS = 5.0
DEFAULT_PROBE_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class SettlingConfig:
    """``seconds`` is the fixed delay for ``delay`` and the timeout for ``probe``."""

    strategy: SettleStrategy = "delay"
    seconds: float = DEFAULT_SETTLE_SECONDS
    probe_interval: float = DEFAULT_PROBE_INTERVAL_SECONDS


def get_settling_config(
    *,
    strategy: str | None = None,
    seconds: float | None = None,
) -> SettlingConfig:
    resolved_strategy = strategy or optional_env_var("ENVSYNC_SETTLE_STRATEGY") or "delay"
    if resolved_strategy not in {"delay", "probe"}:
        raise ConfigurationError(
            f"Unsupported settle strategy: {resolved_strategy} (expected delay or probe)"
        )
    resolved_seconds = seconds
    if resolved_seconds is None:
        resolved_seconds = optional_float_env_var("ENVSYNC_SETTLE_SECONDS")
    if resolved_seconds is None:
        resolved_seconds = DEFAULT_SETTLE_SECONDS
    if resolved_seconds < 0:
        raise ConfigurationError("Settle seconds must be non-negative")
    return SettlingConfig(
        strategy="probe" if resolved_strategy == "probe" else "delay",
        seconds=resolved_seconds,
    )
