"""
Pledge configuration.

Defaults match the original mobile application: a 30 second heartbeat,
a 2 minute staleness threshold and request durations from 30 minutes to
24 hours. Overrides come from a base dict and, optionally, JSON in the
PLEDGE_CFG environment variable.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from typing import Any

from .errors import ConfigError


MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

ENV_VAR = "PLEDGE_CFG"


@dataclass(frozen=True)
class PledgeConfig:
    """Per-connection protocol parameters (milliseconds)."""

    heartbeat_interval_ms: int = 30_000
    heartbeat_timeout_ms: int = 120_000

    # Used by PledgeEngine.initiate() when no duration is given
    default_request_ms: int = 30 * MINUTE_MS

    # Durations offered to the user when starting a request. Presentation
    # data for the host's picker unless restrict_durations is set.
    request_durations_ms: tuple[int, ...] = (
        30 * MINUTE_MS,
        1 * HOUR_MS,
        6 * HOUR_MS,
        12 * HOUR_MS,
        24 * HOUR_MS,
    )

    # Reject initiate() durations outside request_durations_ms
    restrict_durations: bool = False

    def validate(self) -> "PledgeConfig":
        for name in ("heartbeat_interval_ms", "heartbeat_timeout_ms", "default_request_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.heartbeat_timeout_ms <= self.heartbeat_interval_ms:
            raise ConfigError(
                f"heartbeat_timeout_ms ({self.heartbeat_timeout_ms}) must exceed "
                f"heartbeat_interval_ms ({self.heartbeat_interval_ms})"
            )
        if not self.request_durations_ms:
            raise ConfigError("request_durations_ms must not be empty")
        for value in self.request_durations_ms:
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"request duration must be a positive integer, got {value!r}")
        if not isinstance(self.restrict_durations, bool):
            raise ConfigError(f"restrict_durations must be a boolean, got {self.restrict_durations!r}")
        if self.restrict_durations and self.default_request_ms not in self.request_durations_ms:
            raise ConfigError(
                f"default_request_ms ({self.default_request_ms}) is not one of request_durations_ms"
            )
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PledgeConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        if "request_durations_ms" in kwargs:
            kwargs["request_durations_ms"] = tuple(kwargs["request_durations_ms"])
        return cls(**kwargs).validate()


def _merged_cfg(base: dict | None) -> dict:
    """Merge base cfg with optional JSON in PLEDGE_CFG."""
    cfg: dict = (base or {}).copy()
    env_cfg = os.environ.get(ENV_VAR)
    if env_cfg:
        try:
            parsed = json.loads(env_cfg)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            cfg.update(parsed)
    return cfg


def load_config(base: dict | None = None) -> PledgeConfig:
    """Load and validate a config from ``base`` plus the environment."""
    return PledgeConfig.from_dict(_merged_cfg(base))
