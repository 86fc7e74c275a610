from __future__ import annotations

import asyncio

from fakes import RecordingSleep, relation
from slotwarden.core.classifier import classify
from slotwarden.core.config import ReconcileConfig
from slotwarden.core.models import ErrorKind, Failure, RelationshipSnapshot, Success, Timeout
from slotwarden.core.reconcile import (
    Reconciliation,
    TimeoutReconciler,
    reconcile_after_timeout,
    run_with_deadline,
)


def _reader(snapshot: RelationshipSnapshot):
    async def read() -> RelationshipSnapshot:
        return snapshot

    return read


def _reconciler(sleep: RecordingSleep) -> TimeoutReconciler:
    return TimeoutReconciler(ReconcileConfig(grace_seconds=2.0), sleep=sleep)


def test_pending_after_timeout_means_sent(sleep: RecordingSleep) -> None:
    snapshot = RelationshipSnapshot(pending_sent=[relation("peer", age_days=0)])
    verdict = asyncio.run(_reconciler(sleep).reconcile("peer", _reader(snapshot)))

    assert verdict is Reconciliation.SENT
    assert verdict.confirmed_sent
    assert isinstance(verdict.to_outcome(), Success)
    assert sleep.calls == [2.0]


def test_confirmed_after_timeout_is_definitive_already_related(sleep: RecordingSleep) -> None:
    snapshot = RelationshipSnapshot(confirmed=[relation("peer", age_days=90)])
    verdict = asyncio.run(_reconciler(sleep).reconcile("peer", _reader(snapshot)))

    assert verdict is Reconciliation.ALREADY_RELATED
    outcome = verdict.to_outcome()
    assert isinstance(outcome, Failure)
    assert classify(outcome.code).kind is ErrorKind.DEFINITIVE


def test_absent_after_timeout_is_temporary_failure(sleep: RecordingSleep) -> None:
    verdict = asyncio.run(_reconciler(sleep).reconcile("peer", _reader(RelationshipSnapshot())))

    assert verdict is Reconciliation.NOT_SENT
    outcome = verdict.to_outcome()
    assert isinstance(outcome, Failure)
    assert classify(outcome.code).kind is ErrorKind.TEMPORARY


def test_failed_requery_is_inconclusive_and_surfaced(sleep: RecordingSleep) -> None:
    async def broken() -> RelationshipSnapshot:
        raise RuntimeError("list failed")

    verdict = asyncio.run(_reconciler(sleep).reconcile("peer", broken))

    assert verdict is Reconciliation.INCONCLUSIVE
    outcome = verdict.to_outcome()
    assert isinstance(outcome, Failure)
    assert classify(outcome.code).kind is ErrorKind.TEMPORARY


def test_reconcile_is_idempotent_on_unchanged_snapshot(sleep: RecordingSleep) -> None:
    snapshot = RelationshipSnapshot(
        confirmed=[relation("a", age_days=3)],
        pending_sent=[relation("b", age_days=1)],
    )
    reconciler = _reconciler(sleep)
    for peer_id in ("a", "b", "c"):
        first = asyncio.run(reconciler.reconcile(peer_id, _reader(snapshot)))
        second = asyncio.run(reconciler.reconcile(peer_id, _reader(snapshot)))
        assert first is second


def test_generic_reconciler_accepts_any_state_shape(sleep: RecordingSleep) -> None:
    async def read_counter() -> int:
        return 7

    verdict = asyncio.run(
        reconcile_after_timeout(
            read_counter,
            lambda value: Reconciliation.SENT if value == 7 else Reconciliation.NOT_SENT,
            grace_seconds=0.5,
            sleep=sleep,
        )
    )
    assert verdict is Reconciliation.SENT
    assert sleep.calls == [0.5]


def test_missed_deadline_becomes_timeout() -> None:
    async def hang():
        await asyncio.sleep(10)
        return Success()

    async def quick():
        return Success(display_name="ok")

    assert isinstance(asyncio.run(run_with_deadline(hang, 0.01)), Timeout)
    assert asyncio.run(run_with_deadline(quick, 1.0)) == Success(display_name="ok")
