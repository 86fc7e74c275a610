"""Gateway-to-core relationship mapping adapter.

This keeps gateway payload details out of the core dispatcher.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from slotwarden.core.models import Failure, Outcome, PeerRelation, RelationshipSnapshot, Success

# Relationship codes as reported by the social-graph service.
RELATIONSHIP_REQUEST_RECEIVED = 1
RELATIONSHIP_REQUEST_SENT = 2
RELATIONSHIP_CONFIRMED = 3
RELATIONSHIP_REQUEST_INITIATOR = 4

PENDING_SENT_CODES = {RELATIONSHIP_REQUEST_SENT, RELATIONSHIP_REQUEST_INITIATOR}


def parse_established_at(raw: Any) -> Optional[datetime]:
    """Return a UTC timestamp, or None for missing/zero/unparseable values."""

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not raw > 0:
            return None
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def parse_snapshot(payload: Mapping[str, Any]) -> RelationshipSnapshot:
    """Split the flat relationship list into confirmed and pending buckets.

    Entries with unknown relationship codes do not hold a slot and are dropped.
    """

    confirmed = []
    pending_sent = []
    pending_received = []
    for entry in payload.get("relationships") or []:
        if not isinstance(entry, Mapping):
            continue
        peer_id = entry.get("peer_id")
        if not peer_id:
            continue
        relation = PeerRelation(
            peer_id=str(peer_id),
            established_at=parse_established_at(entry.get("since")),
        )
        code = entry.get("relationship")
        if code == RELATIONSHIP_CONFIRMED:
            confirmed.append(relation)
        elif code in PENDING_SENT_CODES:
            pending_sent.append(relation)
        elif code == RELATIONSHIP_REQUEST_RECEIVED:
            pending_received.append(relation)

    return RelationshipSnapshot(
        confirmed=confirmed,
        pending_sent=pending_sent,
        pending_received=pending_received,
    )


def outcome_from_response(status_code: int, body: Any) -> Outcome:
    """Map a request-relationship response to a core outcome."""

    data = body if isinstance(body, Mapping) else {}
    if 200 <= status_code < 300:
        return Success(display_name=data.get("display_name"))

    code = data.get("code")
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    message = data.get("message") or f"HTTP {status_code}"
    return Failure(code=code, message=str(message))
