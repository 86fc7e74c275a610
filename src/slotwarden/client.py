"""Gateway session and worker factories for slotwarden.

Each batch gets its own session factory so no connection state is shared
between accounts running at the same time.
"""

from __future__ import annotations

import logging

from slotwarden import settings
from slotwarden.adapters.gateway_client import GatewaySessionFactory
from slotwarden.core.dispatcher import BatchDispatcher
from slotwarden.core.worker import InviteWorker


def build_session_factory() -> GatewaySessionFactory:
    """Create a gateway session factory from settings.

    GATEWAY_URL is read via python-dotenv to keep deployment details out of
    the repo.
    """

    # Fail fast on a blank URL to avoid an ambiguous connection error later.
    if not settings.GATEWAY_URL:
        raise RuntimeError("Missing GATEWAY_URL in environment")

    logging.getLogger(__name__).debug("Initializing gateway session factory for %s", settings.GATEWAY_URL)

    return GatewaySessionFactory(settings.GATEWAY_URL, timeout=settings.GATEWAY_TIMEOUT_SECONDS)


def build_dispatcher() -> BatchDispatcher:
    return BatchDispatcher(
        policy=settings.ERROR_POLICY,
        capacity=settings.CAPACITY,
        reconcile=settings.RECONCILE,
        eviction=settings.EVICTION,
    )


def build_worker() -> InviteWorker:
    return InviteWorker(build_session_factory(), build_dispatcher())
