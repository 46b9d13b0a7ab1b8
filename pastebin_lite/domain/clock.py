"""Clock abstraction for an injectable time source."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from .errors import InvalidPasteParameters


TEST_NOW_HEADER = "x-test-now-ms"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def parse_override_ms(raw: str) -> datetime:
    """Convert a millisecond Unix timestamp string into an aware UTC datetime."""
    try:
        millis = int(raw.strip())
        return _EPOCH + timedelta(milliseconds=millis)
    except (ValueError, OverflowError) as exc:
        raise InvalidPasteParameters(
            f"{TEST_NOW_HEADER} must be an integer millisecond timestamp."
        ) from exc


class RequestClock:
    """
    Clock scoped to a single request.

    When ``test_mode`` is on and ``override_source`` yields a value, that
    millisecond timestamp is returned instead of real time. The source is
    consulted on every call to ``now()``; nothing is cached. Outside test mode
    the source is never read.
    """

    def __init__(
        self,
        *,
        test_mode: bool,
        override_source: Callable[[], Optional[str]],
        fallback: Clock | None = None,
    ) -> None:
        self._test_mode = test_mode
        self._override_source = override_source
        self._fallback = fallback or SystemClock()

    def now(self) -> datetime:
        if self._test_mode:
            raw = self._override_source()
            if raw:
                return parse_override_ms(raw)
        return self._fallback.now()
