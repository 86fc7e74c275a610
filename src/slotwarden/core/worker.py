"""One-session invite worker.

The worker owns the session lifecycle for a single batch so the dispatcher
never has to know how a connection is established or torn down.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from slotwarden.core.config import DispatchOptions
from slotwarden.core.dispatcher import BatchDispatcher
from slotwarden.core.models import AccountQuota, BatchResult, CooldownAdvisory, Target, WorkerReport
from slotwarden.core.ports import SessionFactory

LOGGER = logging.getLogger(__name__)

COOLDOWN_REASON_CONNECTION_FAILURE = "connection_failure"


class InviteWorker:
    """Connect, refresh slot usage, dispatch, and always disconnect."""

    def __init__(self, sessions: SessionFactory, dispatcher: BatchDispatcher) -> None:
        self._sessions = sessions
        self._dispatcher = dispatcher

    async def process(
        self,
        account_label: str,
        quota: AccountQuota,
        credentials: Mapping[str, Any],
        targets: Sequence[Target],
        options: DispatchOptions,
    ) -> WorkerReport:
        LOGGER.info(
            "Starting batch for %s: targets=%s, max_per_batch=%s",
            account_label,
            len(targets),
            options.max_per_batch,
        )
        try:
            try:
                client = await self._sessions.connect(credentials)
            except Exception as exc:
                # No per-target work was possible; the caller should back off.
                LOGGER.error("Connection failed for %s: %s", account_label, exc)
                return WorkerReport(
                    success=False,
                    result=BatchResult(),
                    quota=quota,
                    cooldown=CooldownAdvisory(
                        should_apply=True,
                        reason=COOLDOWN_REASON_CONNECTION_FAILURE,
                    ),
                    error=str(exc),
                )

            LOGGER.info("Connected as %s", account_label)

            working = quota
            initialized = False
            try:
                snapshot = await client.list_relationships()
            except Exception as exc:
                LOGGER.warning("Could not refresh slot usage for %s, using caller snapshot: %s", account_label, exc)
            else:
                initialized = quota.overall_used is None
                if quota.overall_used is not None and quota.overall_used != snapshot.total:
                    LOGGER.info("Slots updated: %s -> %s", quota.overall_used, snapshot.total)
                working = quota.with_overall_used(snapshot.total)

            report = await self._dispatcher.dispatch(working, targets, client, options)
            return WorkerReport(
                success=True,
                result=report.result,
                quota=report.quota,
                cooldown=report.cooldown,
                slots_used=len(report.result.successful),
                initialization_performed=initialized,
                eviction=report.eviction,
            )
        finally:
            await self._disconnect(account_label)

    async def _disconnect(self, account_label: str) -> None:
        try:
            await self._sessions.disconnect()
        except Exception:
            LOGGER.exception("Error while disconnecting %s", account_label)
        else:
            LOGGER.info("Disconnected %s", account_label)
