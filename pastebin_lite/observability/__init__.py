from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request


CORRELATION_HEADER = "X-Correlation-ID"


class _RequestContextFilter(logging.Filter):
    """
    Logging filter that enriches records with request-scoped information.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if has_request_context():
            if getattr(record, "correlation_id", None) is None:
                record.correlation_id = getattr(g, "correlation_id", None)
            record.http_method = request.method
            record.http_path = request.path
        return True


class JsonFormatter(logging.Formatter):
    """
    Simple JSON log formatter for structured logging.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Common structured fields we care about.
        for key in (
            "event",
            "correlation_id",
            "http_method",
            "http_path",
            "paste_id",
            "view_count",
            "attempt",
            "error_type",
        ):
            value = getattr(record, key, None)
            if value is not None:
                log[key] = value

        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log, ensure_ascii=False, default=str)


def get_correlation_id() -> str | None:
    """
    Return the current request's correlation_id, if any.
    """

    if not has_request_context():
        return None
    return getattr(g, "correlation_id", None)


def _configure_logging(level: int = logging.INFO) -> None:
    """
    Configure application-wide structured JSON logging.
    """

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(_RequestContextFilter())

    # Replace existing handlers to avoid duplicate logs.
    root.handlers = [handler]


def init_observability(app: Flask) -> None:
    """
    Initialize observability for the Flask app.

    - Configures JSON logging.
    - Sets up per-request correlation IDs.
    """

    _configure_logging(logging.DEBUG if app.config.get("DEBUG") else logging.INFO)

    @app.before_request
    def _set_correlation_id() -> None:  # type: ignore[unused-variable]
        incoming = request.headers.get(CORRELATION_HEADER)
        g.correlation_id = incoming or str(uuid4())

    @app.after_request
    def _propagate_correlation_id(response):  # type: ignore[unused-variable]
        cid = get_correlation_id()
        if cid:
            response.headers[CORRELATION_HEADER] = cid
        return response
