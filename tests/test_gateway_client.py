from __future__ import annotations

import asyncio

import httpx
import pytest

from slotwarden.adapters.gateway_client import GatewaySessionFactory
from slotwarden.core.models import Failure, Success, Timeout
from slotwarden.core.ports import RelationshipQueryError, SessionError


class FakeGateway:
    """Scripted gateway behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.session_status = 200
        self.list_status = 200
        self.requests: list[tuple[str, str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("Authorization", "")
        self.requests.append((request.method, request.url.path, auth))
        path = request.url.path

        if path == "/session":
            return httpx.Response(self.session_status, json={"ok": self.session_status == 200})
        if path == "/relationships" and request.method == "GET":
            if self.list_status != 200:
                return httpx.Response(self.list_status)
            return httpx.Response(
                200,
                json={
                    "relationships": [
                        {"peer_id": "f1", "relationship": 3, "since": 1600000000},
                        {"peer_id": "p1", "relationship": 4, "since": 1700000000},
                    ]
                },
            )
        peer_id = path.rsplit("/", 1)[-1]
        if request.method == "POST":
            if peer_id == "slow":
                raise httpx.ReadTimeout("timed out", request=request)
            if peer_id == "friend":
                return httpx.Response(409, json={"code": 14, "message": "already related"})
            return httpx.Response(200, json={"display_name": peer_id.upper()})
        if request.method == "DELETE":
            if peer_id == "stuck":
                return httpx.Response(400, json={"message": "not pending"})
            return httpx.Response(204)
        return httpx.Response(404)


def _factory(gateway: FakeGateway) -> GatewaySessionFactory:
    return GatewaySessionFactory("http://gateway/", transport=httpx.MockTransport(gateway.handler))


def test_session_round_trip() -> None:
    gateway = FakeGateway()
    factory = _factory(gateway)

    async def scenario():
        client = await factory.connect({"username": "alice", "access_token": "tok"})
        try:
            snapshot = await client.list_relationships()
            sent = await client.request_relationship("bob")
            already = await client.request_relationship("friend")
            slow = await client.request_relationship("slow")
            cancelled = await client.cancel_relationship("p1")
            stuck = await client.cancel_relationship("stuck")
        finally:
            await factory.disconnect()
        return snapshot, sent, already, slow, cancelled, stuck

    snapshot, sent, already, slow, cancelled, stuck = asyncio.run(scenario())

    assert [item.peer_id for item in snapshot.pending_sent] == ["p1"]
    assert snapshot.total == 2
    assert sent == Success(display_name="BOB")
    assert already == Failure(code=14, message="already related")
    assert isinstance(slow, Timeout)
    assert cancelled.success
    assert not stuck.success
    assert stuck.error == "not pending"
    assert all(auth == "Bearer tok" for _, _, auth in gateway.requests)
    assert gateway.requests[0][:2] == ("GET", "/session")


def test_missing_token_is_a_session_error() -> None:
    factory = _factory(FakeGateway())
    with pytest.raises(SessionError):
        asyncio.run(factory.connect({"username": "alice"}))


def test_rejected_session_is_a_session_error() -> None:
    gateway = FakeGateway()
    gateway.session_status = 401
    factory = _factory(gateway)

    with pytest.raises(SessionError):
        asyncio.run(factory.connect({"access_token": "expired"}))
    # Nothing left open after a rejected session.
    asyncio.run(factory.disconnect())


def test_list_failure_raises_query_error() -> None:
    gateway = FakeGateway()
    gateway.list_status = 503
    factory = _factory(gateway)

    async def scenario():
        client = await factory.connect({"access_token": "tok"})
        try:
            await client.list_relationships()
        finally:
            await factory.disconnect()

    with pytest.raises(RelationshipQueryError):
        asyncio.run(scenario())
