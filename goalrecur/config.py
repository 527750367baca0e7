"""Configuration for the recurring goal store."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

__all__ = [
    "EngineConfig",
    "DEFAULT_HORIZON",
    "MAX_HORIZON",
    "LOCK_TIMEOUT",
]

DEFAULT_HORIZON = datetime.timedelta(days=365)
"""How far past the anchor occurrences are materialized when not specified."""

MAX_HORIZON = datetime.timedelta(days=5 * 366)
"""The widest expansion window allowed, measured from the anchor."""

LOCK_TIMEOUT = 30.0
"""Seconds to wait for another operation on the same goal to finish."""


@dataclass(frozen=True)
class EngineConfig:
    """Limits applied by the recurring goal store."""

    default_horizon: datetime.timedelta = DEFAULT_HORIZON

    max_horizon: datetime.timedelta = MAX_HORIZON

    lock_timeout: float = LOCK_TIMEOUT

    def __post_init__(self) -> None:
        """Verify the limits are consistent."""
        if self.default_horizon < datetime.timedelta(0):
            raise ValueError("default_horizon must not be negative")
        if self.max_horizon < self.default_horizon:
            raise ValueError(
                f"max_horizon ({self.max_horizon}) must be at least "
                f"default_horizon ({self.default_horizon})"
            )
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")
