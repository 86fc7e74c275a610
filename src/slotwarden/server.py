"""HTTP worker service for slotwarden.

Exposes one batch-processing endpoint and an unauthenticated health check.
"""

from __future__ import annotations

import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from slotwarden import __version__, settings
from slotwarden.client import build_worker
from slotwarden.core.worker import InviteWorker
from slotwarden.schemas import BatchRequest, report_to_payload

LOGGER = logging.getLogger(__name__)

app = FastAPI(
    title="SlotWarden Worker",
    description="Quota-aware relationship request dispatcher",
    version=__version__,
)


def _worker_info(started: Optional[float] = None) -> Dict[str, Any]:
    info: Dict[str, Any] = {
        "worker_id": settings.WORKER_ID,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if started is not None:
        info["processing_time_ms"] = round((time.monotonic() - started) * 1000)
    return info


def require_api_key(x_api_key: Optional[str] = Header(default=None, alias="X-API-Key")) -> None:
    if not x_api_key:
        LOGGER.warning("Request without API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key required")
    expected = settings.WORKER_API_KEY or ""
    if not expected or not hmac.compare_digest(x_api_key, expected):
        LOGGER.warning("Request with invalid API key")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")


def get_worker() -> InviteWorker:
    # A fresh worker per request keeps sessions from crossing batches.
    return build_worker()


@app.exception_handler(HTTPException)
async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    LOGGER.warning("Invalid request: %s", exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/api/relationships/health")
async def health() -> Dict[str, Any]:
    return {
        "success": True,
        "status": "healthy",
        "worker_id": settings.WORKER_ID,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/relationships/process-invites", dependencies=[Depends(require_api_key)])
async def process_invites(body: BatchRequest, worker: InviteWorker = Depends(get_worker)) -> JSONResponse:
    started = time.monotonic()
    LOGGER.info("Received process-invites request for %s", body.account_label)

    if not body.targets:
        LOGGER.warning("Invalid request: targets must be a non-empty list")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Targets must be a non-empty list"},
        )

    try:
        report = await worker.process(
            body.account_label,
            body.account.to_quota(),
            body.credentials,
            body.to_targets(),
            body.options.to_options(),
        )
    except Exception as exc:
        LOGGER.exception("Request failed for %s", body.account_label)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc), "worker_info": _worker_info(started)},
        )

    payload = report_to_payload(report)
    payload["worker_info"] = _worker_info(started)
    LOGGER.info(
        "Request processed in %sms: success=%s, successful=%s, failed=%s",
        payload["worker_info"]["processing_time_ms"],
        report.success,
        len(report.result.successful),
        len(report.result.failed),
    )
    return JSONResponse(content=payload)
