"""Configuration helpers for the outbox sync worker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_BATCH_SIZE = 25
DEFAULT_ADAPTER_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_ALERT_ATTEMPTS = 10
DEFAULT_SYSTEM_ACTOR_ID = "soba-system"


def _read_int(environ: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {raw}")
    return value


@dataclass
class WorkerConfig:
    """Runtime knobs for the worker loop."""

    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    adapter_timeout_seconds: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS
    retry_alert_attempts: int = DEFAULT_RETRY_ALERT_ATTEMPTS
    system_actor_id: str = DEFAULT_SYSTEM_ACTOR_ID

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def adapter_timeout(self) -> Optional[float]:
        """Seconds to wait on an adapter call; None when disabled."""
        return self.adapter_timeout_seconds or None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WorkerConfig":
        """Build config from environment with defaults for unset values."""
        env = os.environ if environ is None else environ
        return cls(
            poll_interval_ms=_read_int(env, "OUTBOX_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS, 1),
            batch_size=_read_int(env, "OUTBOX_BATCH_SIZE", DEFAULT_BATCH_SIZE, 1),
            adapter_timeout_seconds=_read_float(
                env, "OUTBOX_ADAPTER_TIMEOUT_SECONDS", DEFAULT_ADAPTER_TIMEOUT_SECONDS
            ),
            retry_alert_attempts=_read_int(env, "OUTBOX_RETRY_ALERT_ATTEMPTS", DEFAULT_RETRY_ALERT_ATTEMPTS, 1),
            system_actor_id=(env.get("SOBA_SYSTEM_ACTOR_ID") or "").strip() or DEFAULT_SYSTEM_ACTOR_ID,
        )
