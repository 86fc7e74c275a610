"""Reconciliation of mutations whose response never arrived.

A request that misses its deadline may still have been applied by the
service. Instead of guessing, we wait briefly and read the state back.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from slotwarden.core.classifier import CODE_ALREADY_RELATED, CODE_TIMEOUT
from slotwarden.core.config import ReconcileConfig
from slotwarden.core.models import Failure, Outcome, RelationshipSnapshot, Success, Timeout

LOGGER = logging.getLogger(__name__)

SnapshotT = TypeVar("SnapshotT")
Sleep = Callable[[float], Awaitable[None]]


class Reconciliation(str, Enum):
    SENT = "sent"
    ALREADY_RELATED = "already_related"
    NOT_SENT = "not_sent"
    INCONCLUSIVE = "inconclusive"

    @property
    def confirmed_sent(self) -> bool:
        return self is Reconciliation.SENT

    def to_outcome(self) -> Outcome:
        """Effective outcome used by the dispatcher in place of the timeout."""

        if self is Reconciliation.SENT:
            return Success()
        if self is Reconciliation.ALREADY_RELATED:
            return Failure(code=CODE_ALREADY_RELATED, message="already related")
        if self is Reconciliation.NOT_SENT:
            return Failure(code=CODE_TIMEOUT, message="request timed out (verified not sent)")
        return Failure(code=CODE_TIMEOUT, message="request timed out (verification failed)")


async def run_with_deadline(mutate: Callable[[], Awaitable[Outcome]], deadline: float) -> Outcome:
    """Run one mutation, mapping a missed deadline to Timeout."""

    try:
        return await asyncio.wait_for(mutate(), timeout=deadline)
    except asyncio.TimeoutError:
        return Timeout()


async def reconcile_after_timeout(
    read_state: Callable[[], Awaitable[SnapshotT]],
    interpret: Callable[[SnapshotT], Reconciliation],
    grace_seconds: float,
    sleep: Sleep = asyncio.sleep,
) -> Reconciliation:
    """Wait for the service to converge, then interpret a fresh read.

    A failing read is INCONCLUSIVE; the caller must surface it, not drop it.
    """

    await sleep(grace_seconds)
    try:
        snapshot = await read_state()
    except Exception as exc:
        LOGGER.warning("Reconcile: state read failed: %s", exc)
        return Reconciliation.INCONCLUSIVE
    return interpret(snapshot)


def interpret_relationship(peer_id: str, snapshot: RelationshipSnapshot) -> Reconciliation:
    if snapshot.is_pending_sent(peer_id):
        return Reconciliation.SENT
    if snapshot.is_confirmed(peer_id):
        return Reconciliation.ALREADY_RELATED
    return Reconciliation.NOT_SENT


class TimeoutReconciler:
    """Resolve a timed-out relationship request by re-reading relationships."""

    def __init__(self, config: ReconcileConfig = ReconcileConfig(), sleep: Sleep = asyncio.sleep) -> None:
        self._config = config
        self._sleep = sleep

    async def reconcile(
        self,
        peer_id: str,
        list_relationships: Callable[[], Awaitable[RelationshipSnapshot]],
    ) -> Reconciliation:
        LOGGER.warning("Timeout sending request to %s, verifying", peer_id)
        verdict = await reconcile_after_timeout(
            list_relationships,
            lambda snapshot: interpret_relationship(peer_id, snapshot),
            self._config.grace_seconds,
            self._sleep,
        )
        if verdict is Reconciliation.SENT:
            LOGGER.info("Verification: request to %s was sent despite the timeout", peer_id)
        elif verdict is Reconciliation.ALREADY_RELATED:
            LOGGER.info("Verification: %s is already related", peer_id)
        elif verdict is Reconciliation.NOT_SENT:
            LOGGER.warning("Verification: request to %s was not sent", peer_id)
        else:
            LOGGER.warning("Verification for %s was inconclusive", peer_id)
        return verdict
