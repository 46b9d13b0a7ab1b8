"""Per-request wiring of clocks, stores and services for the view functions."""

from __future__ import annotations

from flask import current_app, request

from pastebin_lite.db import SessionLocal
from pastebin_lite.domain.clock import TEST_NOW_HEADER, RequestClock
from pastebin_lite.domain.state_machine import coerce_policy
from pastebin_lite.services.paste_service import PasteService
from pastebin_lite.services.paste_store import PasteStore


def request_clock() -> RequestClock:
    """
    Build a clock for the current request.

    The test-time header is re-read on every ``now()`` and only honored when
    the app runs with ``TEST_MODE`` enabled.
    """
    return RequestClock(
        test_mode=bool(current_app.config.get("TEST_MODE", False)),
        override_source=lambda: request.headers.get(TEST_NOW_HEADER),
    )


def build_paste_service() -> PasteService:
    config = current_app.config
    store = PasteStore(
        session_factory=SessionLocal,
        clock=request_clock(),
        expiry_policy=coerce_policy(config.get("EXPIRY_BOUNDARY", "inclusive")),
        max_claim_retries=int(config.get("CLAIM_MAX_RETRIES", 3)),
    )
    base_url = config.get("BASE_URL") or request.host_url
    return PasteService(store=store, base_url=base_url)
