from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator

from pastebin_lite.domain.models import MAX_TTL_SECONDS, MAX_VIEWS_LIMIT


TtlSeconds = Annotated[StrictInt, Field(ge=1, le=MAX_TTL_SECONDS)]
ViewLimit = Annotated[StrictInt, Field(ge=1, le=MAX_VIEWS_LIMIT)]


class PasteCreateRequest(BaseModel):
    content: StrictStr = Field(..., description="Paste content (non-empty after trimming)")
    ttl_seconds: Optional[TtlSeconds] = Field(
        default=None,
        description="Optional time-to-live in seconds (1 to ten years)",
    )
    max_views: Optional[ViewLimit] = Field(
        default=None,
        description="Optional maximum number of consuming reads (1 to 2**31 - 1)",
    )

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must be a non-empty string")
        return value


class PasteCreatedResponse(BaseModel):
    id: str
    url: str


class PasteFetchResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool = True
    error: Optional[str] = None


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into a single ``field: message`` string."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
