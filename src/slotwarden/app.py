"""Application entry point for the slotwarden worker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

from slotwarden import settings

NAME = "SLOTWARDEN"
FONT = "tarty-1"

# Environment variables whose values never reach a log line.
DEFAULT_REDACT_ENV = ["WORKER_API_KEY"]


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, extra: Optional[list[str]] = None) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    names = list(DEFAULT_REDACT_ENV)
    if redact_cfg.get("enabled", True):
        names.extend(redact_cfg.get("patterns", []))
    values = [os.getenv(name) for name in names]
    values.extend(extra or [])
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging(extra_secrets: Optional[list[str]] = None) -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config, extra_secrets)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/slotwarden.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # httpx logs every request URL at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _run_batch(request_path: str) -> int:
    from slotwarden.client import build_worker
    from slotwarden.schemas import BatchRequest, report_to_payload

    with open(request_path, "r", encoding="utf-8") as handle:
        request = BatchRequest.model_validate(json.load(handle))

    token = request.credentials.get("access_token")
    _configure_logging([token] if token else None)
    logger = logging.getLogger(__name__)

    if not request.targets:
        logger.error("Request file has no targets")
        return 2

    worker = build_worker()
    report = asyncio.run(
        worker.process(
            request.account_label,
            request.account.to_quota(),
            request.credentials,
            request.to_targets(),
            request.options.to_options(),
        )
    )
    print(json.dumps(report_to_payload(report), indent=2))
    return 0 if report.success else 1


def _serve(host: Optional[str], port: Optional[int]) -> None:
    import uvicorn

    _configure_logging()
    logger = logging.getLogger(__name__)

    if not settings.WORKER_API_KEY:
        raise RuntimeError("WORKER_API_KEY is required to serve the worker API")

    host = host or settings.WORKER_HOST
    port = port or settings.WORKER_PORT
    logger.info("Worker %s listening on %s:%s", settings.WORKER_ID, host, port)
    uvicorn.run("slotwarden.server:app", host=host, port=port, log_config=None)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="slotwarden")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Process one batch request file and print the report")
    run_parser.add_argument("--request", required=True, help="Path to a batch request JSON file")

    serve_parser = subparsers.add_parser("serve", help="Start the worker HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)
    if args.command == "run":
        _print_banner()
        return _run_batch(args.request)
    if args.command == "serve":
        _print_banner()
        _serve(args.host, args.port)
        return 0
    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
