"""Capacity planning against the weekly allowance and the slot ceiling."""

from __future__ import annotations

import logging

from slotwarden.core.config import MAX_OVERALL_SLOTS
from slotwarden.core.models import AccountQuota, CapacityDecision

LOGGER = logging.getLogger(__name__)


def plan(quota: AccountQuota, requested: int, max_overall: int = MAX_OVERALL_SLOTS) -> CapacityDecision:
    """Decide how many requests can go out now and whether to evict first.

    - No weekly allowance left: nothing can be sent.
    - Slot usage never measured: only the weekly allowance applies.
    - Otherwise the planned batch must fit under the ceiling; if it does not,
      eviction_count is exactly the number of slots to free so it will.

    Pure function; call it again after an eviction with the new usage.
    """

    weekly = quota.weekly_allowance or 0
    requested = max(0, requested)

    if weekly <= 0:
        LOGGER.debug("Capacity: weekly allowance exhausted (%s)", weekly)
        return CapacityDecision(
            can_send=False,
            max_sendable=0,
            needs_eviction=False,
            eviction_count=0,
            weekly_limited=True,
            overall_limited=False,
        )

    max_sendable = min(requested, weekly)

    if quota.overall_used is None:
        LOGGER.debug("Capacity: slot usage unmeasured, max_sendable=%s", max_sendable)
        return CapacityDecision(
            can_send=True,
            max_sendable=max_sendable,
            needs_eviction=False,
            eviction_count=0,
            weekly_limited=False,
            overall_limited=False,
        )

    weekly_limited = weekly < requested
    slots_after_sending = quota.overall_used + max_sendable
    if slots_after_sending <= max_overall:
        LOGGER.debug(
            "Capacity: %s + %s <= %s, no eviction needed",
            quota.overall_used,
            max_sendable,
            max_overall,
        )
        return CapacityDecision(
            can_send=True,
            max_sendable=max_sendable,
            needs_eviction=False,
            eviction_count=0,
            weekly_limited=weekly_limited,
            overall_limited=False,
        )

    eviction_count = quota.overall_used - (max_overall - max_sendable)
    LOGGER.debug(
        "Capacity: %s + %s > %s, eviction_count=%s",
        quota.overall_used,
        max_sendable,
        max_overall,
        eviction_count,
    )
    return CapacityDecision(
        can_send=True,
        max_sendable=max_sendable,
        needs_eviction=True,
        eviction_count=eviction_count,
        weekly_limited=weekly_limited,
        overall_limited=True,
    )


def headroom(quota: AccountQuota, max_overall: int = MAX_OVERALL_SLOTS) -> int:
    """Free slots under the ceiling, or the weekly allowance when unmeasured."""

    if quota.overall_used is None:
        return max(0, quota.weekly_allowance)
    return max(0, max_overall - quota.overall_used)
