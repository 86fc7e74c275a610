"""Static configuration for slotwarden.

Tunable policy (ceiling, pacing, error table, logging) lives in a single JSON
file for quick edits without touching Python. Secrets come from the
environment via python-dotenv.
"""

import json
import os

from dotenv import load_dotenv

from slotwarden.core.classifier import build_error_policy
from slotwarden.core.config import (
    MAX_OVERALL_SLOTS,
    CapacityConfig,
    EvictionConfig,
    ReconcileConfig,
)

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

# config.json is optional; every value below has a working default.
CONFIG_PATH = os.getenv("SLOTWARDEN_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Slot ceiling shared by confirmed and pending relationships.
_capacity = _CONFIG.get("capacity", {})
CAPACITY = CapacityConfig(max_overall=int(_capacity.get("max_overall", MAX_OVERALL_SLOTS)))

# Batch defaults, used when a request omits its own options.
_dispatch = _CONFIG.get("dispatch", {})
MAX_PER_BATCH = int(_dispatch.get("max_per_batch", 30))
INTER_REQUEST_DELAY_MS = int(_dispatch.get("inter_request_delay_ms", 2000))

# Deadline per request and the grace period before re-reading state.
_reconcile = _CONFIG.get("reconcile", {})
RECONCILE = ReconcileConfig(
    request_deadline_seconds=float(_dispatch.get("request_deadline_seconds", 30.0)),
    grace_seconds=float(_reconcile.get("grace_seconds", 2.0)),
)

_eviction = _CONFIG.get("eviction", {})
EVICTION = EvictionConfig(cancel_delay_seconds=float(_eviction.get("cancel_delay_seconds", 0.5)))

# Code table and stop sets; see core.classifier.build_error_policy for the shape.
ERROR_POLICY = build_error_policy(_CONFIG.get("error_policy"))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})

# Service settings come from the environment.
GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:8080")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "30"))
WORKER_API_KEY = os.getenv("WORKER_API_KEY")
WORKER_ID = os.getenv("WORKER_ID", "local")
WORKER_HOST = os.getenv("WORKER_HOST", "0.0.0.0")
WORKER_PORT = int(os.getenv("WORKER_PORT", "3003"))
