"""Configuration for the outbox dispatcher worker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass
class DispatchConfig:
    """Runtime knobs for the dispatcher loop."""

    batch_size: int = 50
    poll_interval: float = 5.0
    max_attempts: int = 5
    backoff_seconds: float = 5.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_mapping(cls, config: Mapping) -> "DispatchConfig":
        """Build from a Flask config (or any mapping of OUTBOX_* keys)."""
        return cls(
            batch_size=int(config.get("OUTBOX_BATCH_SIZE", 50)),
            poll_interval=float(config.get("OUTBOX_POLL_INTERVAL", 5)),
            max_attempts=int(config.get("OUTBOX_MAX_ATTEMPTS", 5)),
            backoff_seconds=float(config.get("OUTBOX_BACKOFF_SECONDS", 5)),
            backoff_multiplier=float(config.get("OUTBOX_BACKOFF_MULTIPLIER", 2)),
        )
