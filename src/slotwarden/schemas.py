"""Wire schemas for batch requests and worker reports."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from slotwarden import settings
from slotwarden.core.config import DispatchOptions
from slotwarden.core.models import AccountQuota, EvictionReport, Target, WorkerReport


class AccountPayload(BaseModel):
    username: Optional[str] = None
    weekly_allowance: int = 0
    overall_used: Optional[int] = None

    def to_quota(self) -> AccountQuota:
        return AccountQuota(weekly_allowance=self.weekly_allowance, overall_used=self.overall_used)


class TargetPayload(BaseModel):
    peer_id: str


class OptionsPayload(BaseModel):
    max_per_batch: Optional[int] = None
    inter_request_delay_ms: Optional[int] = None
    eviction_priority_hint: List[str] = Field(default_factory=list)

    def to_options(self) -> DispatchOptions:
        return DispatchOptions(
            max_per_batch=self.max_per_batch if self.max_per_batch is not None else settings.MAX_PER_BATCH,
            inter_request_delay_ms=(
                self.inter_request_delay_ms
                if self.inter_request_delay_ms is not None
                else settings.INTER_REQUEST_DELAY_MS
            ),
            eviction_priority_hint=list(self.eviction_priority_hint),
        )


class BatchRequest(BaseModel):
    account: AccountPayload
    credentials: Dict[str, Any] = Field(default_factory=dict)
    targets: List[TargetPayload] = Field(default_factory=list)
    options: OptionsPayload = Field(default_factory=OptionsPayload)

    @property
    def account_label(self) -> str:
        return self.account.username or str(self.credentials.get("username") or "unknown")

    def to_targets(self) -> List[Target]:
        return [Target(peer_id=item.peer_id) for item in self.targets]


def _eviction_payload(eviction: Optional[EvictionReport]) -> Dict[str, Any]:
    if eviction is None:
        return {"performed": False, "slots_freed": 0, "cancelled": []}
    return {
        "performed": True,
        "requested": eviction.requested,
        "slots_freed": eviction.slots_freed,
        "cancelled": list(eviction.cancelled),
        "failed": list(eviction.failed),
        "overall_used_before": eviction.overall_used_before,
        "overall_used_after": eviction.overall_used_after,
    }


def report_to_payload(report: WorkerReport) -> Dict[str, Any]:
    """Flatten a worker report into a JSON-safe dict."""

    result = report.result
    payload: Dict[str, Any] = {
        "success": report.success,
        "results": {
            "successful": list(result.successful),
            "failed": [
                {
                    "peer_id": entry.peer_id,
                    "code": entry.code,
                    "kind": entry.kind.value,
                    "message": entry.message,
                }
                for entry in result.failed
            ],
            "not_attempted": list(result.not_attempted),
            "rate_limit_triggered": result.rate_limit_triggered,
            "account_limit_triggered": result.account_limit_triggered,
            "banned": result.banned,
            "limit_reached": result.limit_reached,
            "invitation_error_count": result.invitation_error_count,
        },
        "account_updates": {
            "weekly_allowance": report.quota.weekly_allowance,
            "overall_used": report.quota.overall_used,
            "slots_used": report.slots_used,
            "initialization_performed": report.initialization_performed,
            "eviction": _eviction_payload(report.eviction),
        },
        "cooldown": {
            "should_apply": report.cooldown.should_apply,
            "reason": report.cooldown.reason,
            "codes": list(report.cooldown.codes),
        },
    }
    if report.error:
        payload["error"] = report.error
    return payload
