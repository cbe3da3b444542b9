"""
Execution context threaded through canonicalization and validation.

Chain identity and the current time are passed in explicitly rather than read
from globals, so every validation call is reproducible with injected values.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace

from meekit.core import config


@dataclass(frozen=True)
class ExecutionContext:
    """Ambient chain values a validation call depends on."""

    chain_id: int
    # Caller-side "now" for ValidationData.is_active; verifiers never read it
    timestamp: int = 0
    entry_point: str = config.ENTRY_POINT_ADDRESS

    @classmethod
    def from_config(cls, timestamp: int | None = None) -> "ExecutionContext":
        return cls(
            chain_id=config.Config.CHAIN_ID,
            timestamp=int(time.time()) if timestamp is None else timestamp,
            entry_point=config.Config.ENTRY_POINT_ADDRESS,
        )

    def at(self, timestamp: int) -> "ExecutionContext":
        return replace(self, timestamp=timestamp)
