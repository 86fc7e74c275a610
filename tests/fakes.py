"""Fakes for the core ports, shared across test modules."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

from slotwarden.core.models import (
    CancelResult,
    Outcome,
    PeerRelation,
    RelationshipSnapshot,
    Success,
)

HANG = object()

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def relation(peer_id: str, age_days: Optional[int] = None) -> PeerRelation:
    """Relation established age_days before BASE_TIME (older = larger)."""

    if age_days is None:
        return PeerRelation(peer_id=peer_id, established_at=None)
    return PeerRelation(peer_id=peer_id, established_at=BASE_TIME - timedelta(days=age_days))


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeRelationshipClient:
    """In-memory relationship client.

    Cancelling a pending request removes it from the live snapshot, so a
    re-list after eviction reflects the cancellations.
    """

    def __init__(
        self,
        outcomes: Optional[dict[str, Union[Outcome, Exception, object]]] = None,
        snapshot: Optional[RelationshipSnapshot] = None,
        snapshots_after_timeout: Optional[Iterable[RelationshipSnapshot]] = None,
        cancel_failures: Iterable[str] = (),
    ) -> None:
        self.outcomes = dict(outcomes or {})
        self.snapshot = snapshot or RelationshipSnapshot()
        self.snapshots_after_timeout = list(snapshots_after_timeout or [])
        self.cancel_failures = set(cancel_failures)
        self.list_error: Optional[Exception] = None
        # Listing calls before this one (1-based) still succeed.
        self.list_error_from_call = 1
        self.requested: list[str] = []
        self.cancelled: list[str] = []
        self.list_calls = 0

    async def list_relationships(self) -> RelationshipSnapshot:
        self.list_calls += 1
        if self.list_error is not None and self.list_calls >= self.list_error_from_call:
            raise self.list_error
        if self.snapshots_after_timeout:
            return self.snapshots_after_timeout.pop(0)
        return self.snapshot

    async def request_relationship(self, peer_id: str) -> Outcome:
        self.requested.append(peer_id)
        outcome = self.outcomes.get(peer_id, Success(display_name=peer_id))
        if outcome is HANG:
            await asyncio.sleep(10)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def cancel_relationship(self, peer_id: str) -> CancelResult:
        if peer_id in self.cancel_failures:
            return CancelResult(success=False, error="cannot cancel")
        self.cancelled.append(peer_id)
        self.snapshot = RelationshipSnapshot(
            confirmed=self.snapshot.confirmed,
            pending_sent=[item for item in self.snapshot.pending_sent if item.peer_id != peer_id],
            pending_received=self.snapshot.pending_received,
        )
        return CancelResult(success=True)


class FakeSessionFactory:
    def __init__(self, client: Optional[FakeRelationshipClient] = None, error: Optional[Exception] = None) -> None:
        self.client = client or FakeRelationshipClient()
        self.error = error
        self.connected_with: list[dict] = []
        self.disconnects = 0

    async def connect(self, credentials) -> FakeRelationshipClient:
        self.connected_with.append(dict(credentials))
        if self.error is not None:
            raise self.error
        return self.client

    async def disconnect(self) -> None:
        self.disconnects += 1

