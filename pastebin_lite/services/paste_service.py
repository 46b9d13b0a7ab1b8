from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pastebin_lite.services.paste_store import PasteStore


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class PasteService:
    """
    Application service translating store results into response DTOs.

    Business rules live in ``PasteStore``; this layer only builds share URLs
    and shapes plain dicts for the HTTP layer. Errors from the store
    propagate unchanged.
    """

    store: PasteStore
    base_url: str

    def share_url(self, paste_id: str) -> str:
        return f"{self.base_url.rstrip('/')}/p/{paste_id}"

    def create_paste(
        self,
        *,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> dict[str, Any]:
        record = self.store.create(
            content,
            ttl_seconds=ttl_seconds,
            max_views=max_views,
        )
        return {"id": record.id, "url": self.share_url(record.id)}

    def fetch_paste(self, paste_id: str) -> dict[str, Any]:
        """Consume one view and return the machine-readable paste body."""
        result = self.store.claim_view(paste_id)
        return {
            "content": result.content,
            "remaining_views": result.remaining_views,
            "expires_at": isoformat_utc(result.expires_at),
        }

    def display_paste(self, paste_id: str) -> dict[str, Any]:
        """Return a paste for the HTML page without consuming a view."""
        record = self.store.peek(paste_id)
        return {
            "id": record.id,
            "content": record.content,
            "expires_at": isoformat_utc(record.expires_at),
        }
