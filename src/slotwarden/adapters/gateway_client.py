"""HTTP gateway adapter for the social-graph service.

Implements the core RelationshipClient and SessionFactory ports over a JSON
gateway. The gateway owns the real network login; we only carry its token.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from slotwarden.adapters.relationship_mapper import outcome_from_response, parse_snapshot
from slotwarden.core.models import CancelResult, Failure, Outcome, RelationshipSnapshot, Timeout
from slotwarden.core.ports import RelationshipQueryError, SessionError

LOGGER = logging.getLogger(__name__)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class GatewayRelationshipClient:
    """Relationship operations over an already authenticated httpx client."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def list_relationships(self) -> RelationshipSnapshot:
        try:
            response = await self._http.get("/relationships")
        except httpx.HTTPError as exc:
            raise RelationshipQueryError(f"Relationship list failed: {exc}") from exc
        if not response.is_success:
            raise RelationshipQueryError(f"Relationship list failed: HTTP {response.status_code}")
        payload = _json_or_none(response)
        if not isinstance(payload, Mapping):
            raise RelationshipQueryError("Relationship list returned an invalid payload")
        return parse_snapshot(payload)

    async def request_relationship(self, peer_id: str) -> Outcome:
        try:
            response = await self._http.post(f"/relationships/{peer_id}")
        except httpx.TimeoutException:
            # The mutation may still have been applied; the dispatcher reconciles.
            return Timeout()
        except httpx.RequestError as exc:
            return Failure(code=None, message=str(exc))
        return outcome_from_response(response.status_code, _json_or_none(response))

    async def cancel_relationship(self, peer_id: str) -> CancelResult:
        try:
            response = await self._http.delete(f"/relationships/{peer_id}")
        except httpx.HTTPError as exc:
            return CancelResult(success=False, error=str(exc))
        if response.is_success:
            return CancelResult(success=True)
        body = _json_or_none(response)
        message = body.get("message") if isinstance(body, Mapping) else None
        return CancelResult(success=False, error=message or f"HTTP {response.status_code}")


class GatewaySessionFactory:
    """Open one gateway session per batch and close it afterwards."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def connect(self, credentials: Mapping[str, Any]) -> GatewayRelationshipClient:
        token = credentials.get("access_token")
        if not token:
            raise SessionError("Missing access_token in credentials")

        await self.disconnect()
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            response = await self._http.get("/session")
        except httpx.HTTPError as exc:
            await self.disconnect()
            raise SessionError(f"Gateway unreachable: {exc}") from exc
        if not response.is_success:
            await self.disconnect()
            raise SessionError(f"Session rejected: HTTP {response.status_code}")

        LOGGER.info("Gateway session established for %s", credentials.get("username", "unknown"))
        return GatewayRelationshipClient(self._http)

    async def disconnect(self) -> None:
        if self._http is None:
            return
        http, self._http = self._http, None
        await http.aclose()
