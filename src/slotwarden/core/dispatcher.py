"""Core batch dispatch pipeline.

This module is integration-agnostic. It only relies on the relationship
client port, enabling other gateways or transports without changes here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional, Sequence

from slotwarden.core.capacity import headroom, plan
from slotwarden.core.classifier import DEFAULT_POLICY, ErrorPolicy
from slotwarden.core.config import CapacityConfig, DispatchOptions, EvictionConfig, ReconcileConfig
from slotwarden.core.eviction import evict
from slotwarden.core.models import (
    AccountQuota,
    BatchResult,
    CooldownAdvisory,
    DispatchReport,
    EvictionReport,
    FailedTarget,
    Failure,
    Outcome,
    Success,
    Target,
    Timeout,
)
from slotwarden.core.ports import RelationshipClient
from slotwarden.core.reconcile import TimeoutReconciler, run_with_deadline

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

COOLDOWN_REASON_INVITATION_ERRORS = "invitation_errors"


class BatchDispatcher:
    """Orchestrates capacity planning, eviction and the sequential send loop."""

    def __init__(
        self,
        policy: ErrorPolicy = DEFAULT_POLICY,
        capacity: CapacityConfig = CapacityConfig(),
        reconcile: ReconcileConfig = ReconcileConfig(),
        eviction: EvictionConfig = EvictionConfig(),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._policy = policy
        self._capacity = capacity
        self._reconcile = reconcile
        self._eviction = eviction
        self._sleep = sleep
        self._reconciler = TimeoutReconciler(reconcile, sleep)

    async def dispatch(
        self,
        quota: AccountQuota,
        targets: Sequence[Target],
        client: RelationshipClient,
        options: DispatchOptions = DispatchOptions(),
    ) -> DispatchReport:
        """Send one batch of requests for one account.

        Steps, strictly in order:
        1) Plan capacity; evict and re-plan when the ceiling is in the way
        2) Truncate targets to what can be sent
        3) Send one at a time, classifying failures and stopping early on
           rate-limit, account-limit or banned codes
        4) Derive the updated quota and the cooldown advisory

        The returned decision's max_sendable is the size of the batch that
        was actually sent, which can be smaller than planned after a partial
        eviction.
        """

        requested = len(targets)
        if options.max_per_batch > 0:
            requested = min(requested, options.max_per_batch)

        ceiling = self._capacity.max_overall
        decision = plan(quota, requested, ceiling)
        LOGGER.info(
            "Capacity: can_send=%s, max_sendable=%s, needs_eviction=%s",
            decision.can_send,
            decision.max_sendable,
            decision.needs_eviction,
        )

        if not decision.can_send:
            LOGGER.warning("Account cannot send requests (weekly_limited=%s)", decision.weekly_limited)
            return DispatchReport(
                result=BatchResult(limit_reached=True),
                quota=quota,
                cooldown=CooldownAdvisory(),
                decision=decision,
            )

        working = quota
        eviction_report: Optional[EvictionReport] = None
        if decision.needs_eviction and decision.eviction_count > 0:
            LOGGER.info("Eviction needed: freeing %s slots", decision.eviction_count)
            eviction_report = await evict(
                client,
                decision.eviction_count,
                options.eviction_priority_hint,
                self._eviction,
                self._sleep,
            )
            if eviction_report.overall_used_after is not None:
                working = working.with_overall_used(eviction_report.overall_used_after)
            decision = plan(working, requested, ceiling)

        sendable = decision.max_sendable
        if decision.needs_eviction:
            # Partial eviction: only send what still fits under the ceiling.
            sendable = min(sendable, headroom(working, ceiling))
            LOGGER.warning("Eviction was partial, batch reduced to %s", sendable)
            decision = replace(decision, max_sendable=sendable)

        batch = list(targets[:sendable])
        LOGGER.info("Sending %s requests", len(batch))
        result = await self._send_all(batch, client, options.inter_request_delay)

        updated = self._updated_quota(working, result)
        cooldown = CooldownAdvisory()
        if result.rate_limit_triggered:
            cooldown = CooldownAdvisory(
                should_apply=True,
                reason=COOLDOWN_REASON_INVITATION_ERRORS,
                codes=result.failed_codes(),
            )

        LOGGER.info(
            "Batch complete: %s successful, %s failed, %s not attempted",
            len(result.successful),
            len(result.failed),
            len(result.not_attempted),
        )
        return DispatchReport(
            result=result,
            quota=updated,
            cooldown=cooldown,
            decision=decision,
            eviction=eviction_report,
        )

    async def _send_all(
        self,
        batch: Sequence[Target],
        client: RelationshipClient,
        delay: float,
    ) -> BatchResult:
        result = BatchResult()

        for index, target in enumerate(batch):
            peer_id = target.peer_id
            outcome = await self._attempt(peer_id, client)

            if isinstance(outcome, Success):
                result.successful.append(peer_id)
                LOGGER.debug("Request sent to %s", peer_id)
            else:
                classification = self._policy.classify(outcome.code)
                result.failed.append(
                    FailedTarget(
                        peer_id=peer_id,
                        code=outcome.code,
                        kind=classification.kind,
                        message=outcome.message,
                    )
                )
                if classification.limit_reached:
                    result.limit_reached = True

                # Stop sets may overlap; every matching flag is raised.
                if classification.is_rate_limit:
                    result.invitation_error_count += 1
                    result.rate_limit_triggered = True
                    LOGGER.warning("Rate limit code %s, stopping batch with cooldown", outcome.code)
                if classification.is_account_limit:
                    result.account_limit_triggered = True
                    LOGGER.warning("Account limit code %s, stopping batch without cooldown", outcome.code)
                if classification.is_banned:
                    result.banned = True
                    LOGGER.warning("Account banned (code %s), stopping batch", outcome.code)

                if classification.stops_batch:
                    result.not_attempted.extend(remaining.peer_id for remaining in batch[index + 1 :])
                    break
                LOGGER.debug("Request to %s failed: %s (code %s)", peer_id, outcome.message, outcome.code)

            if index < len(batch) - 1:
                await self._sleep(delay)

        return result

    async def _attempt(self, peer_id: str, client: RelationshipClient) -> Outcome:
        """Send one request and resolve timeouts into an effective outcome."""

        try:
            outcome = await run_with_deadline(
                lambda: client.request_relationship(peer_id),
                self._reconcile.request_deadline_seconds,
            )
        except Exception as exc:
            LOGGER.error("Exception sending request to %s: %s", peer_id, exc)
            return Failure(code=None, message=str(exc))

        if isinstance(outcome, Timeout):
            verdict = await self._reconciler.reconcile(peer_id, client.list_relationships)
            return verdict.to_outcome()
        return outcome

    @staticmethod
    def _updated_quota(quota: AccountQuota, result: BatchResult) -> AccountQuota:
        sent = len(result.successful)
        overall = None if quota.overall_used is None else quota.overall_used + sent
        weekly = max(0, quota.weekly_allowance - sent)
        if result.account_limit_triggered or result.limit_reached:
            weekly = 0
        return AccountQuota(weekly_allowance=weekly, overall_used=overall)
