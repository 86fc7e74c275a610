"""Eviction of pending requests to free slots under the ceiling."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from slotwarden.core.config import EvictionConfig
from slotwarden.core.models import EvictionReport, PendingRelationship
from slotwarden.core.ports import RelationshipClient

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def select(
    pending: Sequence[PendingRelationship],
    count: int,
    priority_hint: Optional[Iterable[str]] = None,
) -> List[str]:
    """Choose up to count pending peer ids to cancel.

    Selection runs in two passes:
    - Hinted pass: walk priority_hint in order and keep the ids that are still
      pending. The live list wins, so stale hint entries are skipped.
    - Fallback pass: oldest established_at first. Entries without a timestamp
      are never picked here.

    May return fewer than count when not enough entries qualify.
    """

    if count <= 0 or not pending:
        return []

    live = {relation.peer_id: relation for relation in pending}
    selected: List[str] = []
    chosen: set[str] = set()

    for peer_id in priority_hint or []:
        if len(selected) >= count:
            break
        if peer_id in live and peer_id not in chosen:
            selected.append(peer_id)
            chosen.add(peer_id)

    if len(selected) < count:
        eligible = [
            relation
            for relation in live.values()
            if relation.peer_id not in chosen and relation.established_at is not None
        ]
        eligible.sort(key=lambda relation: relation.established_at)
        for relation in eligible[: count - len(selected)]:
            selected.append(relation.peer_id)
            chosen.add(relation.peer_id)

    if len(selected) < count:
        LOGGER.info("Eviction: only %s of %s requested slots can be freed", len(selected), count)

    return selected


async def evict(
    client: RelationshipClient,
    count: int,
    priority_hint: Optional[Iterable[str]] = None,
    config: EvictionConfig = EvictionConfig(),
    sleep: Sleep = asyncio.sleep,
) -> EvictionReport:
    """Cancel pending requests on the service and re-measure slot usage.

    Never raises for per-peer failures; a listing failure before selection
    yields an empty report so the batch can continue with what it has.
    """

    try:
        before = await client.list_relationships()
    except Exception:
        LOGGER.exception("Eviction: could not list relationships")
        return EvictionReport(requested=count)

    LOGGER.info(
        "Eviction: need %s slots, %s used (%s confirmed, %s pending sent)",
        count,
        before.total,
        len(before.confirmed),
        len(before.pending_sent),
    )

    selected = select(before.pending_sent, count, priority_hint)
    if not selected:
        LOGGER.warning("Eviction: no pending requests eligible for cancellation")
        return EvictionReport(
            requested=count,
            overall_used_before=before.total,
            overall_used_after=before.total,
        )

    cancelled: List[str] = []
    failed: List[str] = []
    for index, peer_id in enumerate(selected):
        try:
            result = await client.cancel_relationship(peer_id)
        except Exception as exc:
            LOGGER.error("Eviction: exception cancelling %s: %s", peer_id, exc)
            failed.append(peer_id)
        else:
            if result.success:
                cancelled.append(peer_id)
            else:
                LOGGER.warning("Eviction: failed to cancel %s: %s", peer_id, result.error)
                failed.append(peer_id)
        if index < len(selected) - 1:
            await sleep(config.cancel_delay_seconds)

    try:
        after = await client.list_relationships()
        overall_after = after.total
    except Exception:
        # Estimate from what we know was cancelled.
        LOGGER.warning("Eviction: could not re-list relationships, estimating usage")
        overall_after = before.total - len(cancelled)

    LOGGER.info(
        "Eviction: cancelled %s/%s, usage %s -> %s",
        len(cancelled),
        len(selected),
        before.total,
        overall_after,
    )
    return EvictionReport(
        requested=count,
        selected=selected,
        cancelled=cancelled,
        failed=failed,
        overall_used_before=before.total,
        overall_used_after=overall_after,
    )
