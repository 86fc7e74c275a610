"""Ports (interfaces) used by the core dispatcher.

Ports define the minimal contracts for the social-graph client and session
handling so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from slotwarden.core.models import CancelResult, Outcome, RelationshipSnapshot


class SessionError(RuntimeError):
    """Raised when a session with the social-graph service cannot be used."""


class RelationshipQueryError(RuntimeError):
    """Raised when the relationship list cannot be read."""


class RelationshipClient(Protocol):
    """Relationship operations required by the core dispatcher."""

    async def list_relationships(self) -> RelationshipSnapshot:
        ...

    async def request_relationship(self, peer_id: str) -> Outcome:
        ...

    async def cancel_relationship(self, peer_id: str) -> CancelResult:
        ...


class SessionFactory(Protocol):
    """Opens and closes the single session used for one batch."""

    async def connect(self, credentials: Mapping[str, Any]) -> RelationshipClient:
        ...

    async def disconnect(self) -> None:
        ...
