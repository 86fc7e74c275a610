from __future__ import annotations

import asyncio

from fakes import FakeRelationshipClient, FakeSessionFactory, RecordingSleep, relation
from slotwarden.core.config import DispatchOptions
from slotwarden.core.dispatcher import BatchDispatcher
from slotwarden.core.models import AccountQuota, Failure, RelationshipSnapshot, Target
from slotwarden.core.ports import SessionError
from slotwarden.core.worker import InviteWorker

OPTIONS = DispatchOptions(max_per_batch=10, inter_request_delay_ms=0)


def _worker(sessions: FakeSessionFactory) -> InviteWorker:
    return InviteWorker(sessions, BatchDispatcher(sleep=RecordingSleep()))


def _process(worker: InviteWorker, quota: AccountQuota, targets: list[Target]):
    return asyncio.run(worker.process("alice", quota, {"access_token": "tok"}, targets, OPTIONS))


def test_connection_failure_is_hard_failure_with_cooldown() -> None:
    sessions = FakeSessionFactory(error=SessionError("Session rejected: HTTP 401"))
    quota = AccountQuota(weekly_allowance=10, overall_used=5)

    report = _process(_worker(sessions), quota, [Target("a"), Target("b")])

    assert not report.success
    assert report.error == "Session rejected: HTTP 401"
    assert report.cooldown.should_apply
    assert report.cooldown.reason == "connection_failure"
    assert report.cooldown.codes == []
    assert report.quota == quota
    assert sessions.disconnects == 1


def test_refreshes_usage_and_marks_initialization() -> None:
    snapshot = RelationshipSnapshot(
        confirmed=[relation("f1", age_days=10), relation("f2", age_days=9)],
        pending_sent=[relation("p1", age_days=1)],
    )
    sessions = FakeSessionFactory(client=FakeRelationshipClient(snapshot=snapshot))

    report = _process(_worker(sessions), AccountQuota(weekly_allowance=10, overall_used=None), [Target("a")])

    assert report.success
    assert report.initialization_performed
    assert report.slots_used == 1
    assert report.quota == AccountQuota(weekly_allowance=9, overall_used=4)
    assert sessions.connected_with == [{"access_token": "tok"}]
    assert sessions.disconnects == 1


def test_keeps_caller_snapshot_when_refresh_fails() -> None:
    client = FakeRelationshipClient()
    client.list_error = RuntimeError("list failed")
    sessions = FakeSessionFactory(client=client)

    report = _process(_worker(sessions), AccountQuota(weekly_allowance=10, overall_used=100), [Target("a")])

    assert report.success
    assert not report.initialization_performed
    assert report.quota.overall_used == 101


def test_rate_limit_cooldown_passes_through_and_session_closes() -> None:
    client = FakeRelationshipClient(outcomes={"b": Failure(code=15, message="denied")})
    sessions = FakeSessionFactory(client=client)

    report = _process(
        _worker(sessions),
        AccountQuota(weekly_allowance=10, overall_used=0),
        [Target("a"), Target("b"), Target("c")],
    )

    assert report.success
    assert report.cooldown.should_apply
    assert report.result.not_attempted == ["c"]
    assert sessions.disconnects == 1
