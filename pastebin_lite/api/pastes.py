from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, request
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pastebin_lite.api.dependencies import build_paste_service
from pastebin_lite.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PasteCreatedResponse,
    PasteCreateRequest,
    PasteFetchResponse,
    describe_validation_error,
)
from pastebin_lite.db import READ_ONLY_EXECUTION_OPTIONS, get_engine
from pastebin_lite.domain.errors import (
    IdGenerationError,
    InvalidPasteParameters,
    PasteNotFoundError,
    StorageUnavailableError,
)
from pastebin_lite.observability import get_correlation_id


logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

NOT_FOUND_MESSAGE = "Not found"


def _error(message: str, status: HTTPStatus) -> tuple[dict, int]:
    return ErrorResponse(error=message).model_dump(), status


@api_bp.route("/healthz", methods=["GET"])
def healthz() -> tuple[dict, int]:
    """Health check that verifies the database answers."""

    try:
        with get_engine().connect() as conn:
            conn.execution_options(**READ_ONLY_EXECUTION_OPTIONS)
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error(
            "Health check failed",
            extra={
                "event": "health_check_failed",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        body = HealthResponse(ok=False, error="Database connection failed").model_dump()
        return body, HTTPStatus.INTERNAL_SERVER_ERROR

    return HealthResponse().model_dump(exclude_none=True), HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; storage rules by the paste store.
    """
    raw = request.get_json(silent=True, force=True)
    if raw is None:
        return _error("Invalid JSON", HTTPStatus.BAD_REQUEST)

    try:
        payload = PasteCreateRequest.model_validate(raw)
    except ValidationError as exc:
        return _error(describe_validation_error(exc), HTTPStatus.BAD_REQUEST)

    paste_service = build_paste_service()
    try:
        dto = paste_service.create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
        )
    except InvalidPasteParameters as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    except IdGenerationError:
        return _error("Could not allocate a paste id", HTTPStatus.INTERNAL_SERVER_ERROR)
    except StorageUnavailableError:
        return _error("Storage unavailable", HTTPStatus.INTERNAL_SERVER_ERROR)

    return PasteCreatedResponse(**dto).model_dump(), HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def fetch_paste(paste_id: str) -> tuple[dict, int]:
    """Return a paste's content, consuming one of its views."""

    paste_service = build_paste_service()
    try:
        dto = paste_service.fetch_paste(paste_id)
    except PasteNotFoundError:
        return _error(NOT_FOUND_MESSAGE, HTTPStatus.NOT_FOUND)
    except InvalidPasteParameters as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    except StorageUnavailableError:
        return _error("Storage unavailable", HTTPStatus.SERVICE_UNAVAILABLE)

    return PasteFetchResponse(**dto).model_dump(), HTTPStatus.OK
