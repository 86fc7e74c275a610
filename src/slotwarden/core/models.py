"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any gateway-specific payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union


@dataclass(frozen=True)
class AccountQuota:
    """Quota snapshot for one account.

    overall_used is None when slot usage has never been measured.
    """

    weekly_allowance: int
    overall_used: Optional[int]

    def with_overall_used(self, overall_used: Optional[int]) -> "AccountQuota":
        return replace(self, overall_used=overall_used)


@dataclass(frozen=True)
class Target:
    """A single peer to send a relationship request to."""

    peer_id: str


@dataclass(frozen=True)
class Success:
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Failure:
    code: Optional[int]
    message: str


@dataclass(frozen=True)
class Timeout:
    """The request did not answer within its deadline."""


Outcome = Union[Success, Failure, Timeout]


class ErrorKind(str, Enum):
    DEFINITIVE = "definitive"
    TEMPORARY = "temporary"


@dataclass(frozen=True)
class Classification:
    """Deterministic classification of one outcome code."""

    kind: ErrorKind
    is_rate_limit: bool = False
    is_account_limit: bool = False
    is_banned: bool = False
    limit_reached: bool = False
    label: str = "unknown error"

    @property
    def stops_batch(self) -> bool:
        return self.is_rate_limit or self.is_account_limit or self.is_banned


@dataclass(frozen=True)
class CapacityDecision:
    can_send: bool
    max_sendable: int
    needs_eviction: bool
    eviction_count: int
    weekly_limited: bool
    overall_limited: bool


@dataclass(frozen=True)
class PeerRelation:
    """A relationship entry as reported by the social-graph service."""

    peer_id: str
    established_at: Optional[datetime] = None


# Pending (sent, not yet accepted) requests share the relation shape.
PendingRelationship = PeerRelation


@dataclass(frozen=True)
class RelationshipSnapshot:
    confirmed: List[PeerRelation] = field(default_factory=list)
    pending_sent: List[PeerRelation] = field(default_factory=list)
    pending_received: List[PeerRelation] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Slots currently held: confirmed plus both pending directions."""

        return len(self.confirmed) + len(self.pending_sent) + len(self.pending_received)

    def is_pending_sent(self, peer_id: str) -> bool:
        return any(relation.peer_id == peer_id for relation in self.pending_sent)

    def is_confirmed(self, peer_id: str) -> bool:
        return any(relation.peer_id == peer_id for relation in self.confirmed)


@dataclass(frozen=True)
class CancelResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class FailedTarget:
    peer_id: str
    code: Optional[int]
    kind: ErrorKind
    message: str = ""


@dataclass
class BatchResult:
    """Per-batch outcome buckets.

    successful, failed and not_attempted partition the attempted targets.
    """

    successful: List[str] = field(default_factory=list)
    failed: List[FailedTarget] = field(default_factory=list)
    not_attempted: List[str] = field(default_factory=list)
    rate_limit_triggered: bool = False
    account_limit_triggered: bool = False
    banned: bool = False
    limit_reached: bool = False
    invitation_error_count: int = 0

    def failed_codes(self) -> List[int]:
        """Unique failure codes in first-seen order."""

        codes: List[int] = []
        for entry in self.failed:
            if entry.code is not None and entry.code not in codes:
                codes.append(entry.code)
        return codes


@dataclass(frozen=True)
class CooldownAdvisory:
    should_apply: bool = False
    reason: Optional[str] = None
    codes: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class EvictionReport:
    requested: int = 0
    selected: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    overall_used_before: Optional[int] = None
    overall_used_after: Optional[int] = None

    @property
    def slots_freed(self) -> int:
        return len(self.cancelled)


@dataclass(frozen=True)
class DispatchReport:
    """Everything one dispatch hands back for the caller to persist."""

    result: BatchResult
    quota: AccountQuota
    cooldown: CooldownAdvisory
    decision: CapacityDecision
    eviction: Optional[EvictionReport] = None


@dataclass(frozen=True)
class WorkerReport:
    """Outcome of a full session: connect, refresh, dispatch, disconnect."""

    success: bool
    result: BatchResult
    quota: AccountQuota
    cooldown: CooldownAdvisory
    slots_used: int = 0
    initialization_performed: bool = False
    eviction: Optional[EvictionReport] = None
    error: Optional[str] = None
