"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

MAX_OVERALL_SLOTS = 250


@dataclass(frozen=True)
class CapacityConfig:
    """Slot ceiling shared by confirmed and pending relationships."""

    max_overall: int = MAX_OVERALL_SLOTS


@dataclass(frozen=True)
class ReconcileConfig:
    """Timing used when a request misses its deadline."""

    request_deadline_seconds: float = 30.0
    grace_seconds: float = 2.0


@dataclass(frozen=True)
class EvictionConfig:
    cancel_delay_seconds: float = 0.5


@dataclass(frozen=True)
class DispatchOptions:
    """Per-batch options supplied by the caller."""

    max_per_batch: int = 30
    inter_request_delay_ms: int = 2000
    eviction_priority_hint: List[str] = field(default_factory=list)

    @property
    def inter_request_delay(self) -> float:
        return max(0, self.inter_request_delay_ms) / 1000.0
