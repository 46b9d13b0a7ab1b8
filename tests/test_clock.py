from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pastebin_lite.domain.clock import RequestClock, SystemClock, parse_override_ms
from pastebin_lite.domain.errors import InvalidPasteParameters


class FrozenClock:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def now(self) -> datetime:
        return self.value


FALLBACK = datetime(2030, 5, 5, tzinfo=timezone.utc)


def test_system_clock_is_timezone_aware() -> None:
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset().total_seconds() == 0


def test_parse_override_ms() -> None:
    assert parse_override_ms("0") == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert parse_override_ms("1700000000123") == datetime(
        2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc
    )


@pytest.mark.parametrize("raw", ["soon", "12.5", "1e3", ""])
def test_parse_override_ms_rejects_garbage(raw: str) -> None:
    with pytest.raises(InvalidPasteParameters):
        parse_override_ms(raw)


def test_request_clock_honors_override_in_test_mode() -> None:
    clock = RequestClock(
        test_mode=True,
        override_source=lambda: "1000",
        fallback=FrozenClock(FALLBACK),
    )
    assert clock.now() == datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)


def test_request_clock_reads_override_on_every_call() -> None:
    header = {"value": "1000"}
    clock = RequestClock(
        test_mode=True,
        override_source=lambda: header["value"],
        fallback=FrozenClock(FALLBACK),
    )

    first = clock.now()
    header["value"] = "61000"
    second = clock.now()
    header["value"] = None
    third = clock.now()

    assert (second - first).total_seconds() == 60
    assert third == FALLBACK


def test_request_clock_ignores_override_outside_test_mode() -> None:
    def source() -> str:
        raise AssertionError("override must not be read outside test mode")

    clock = RequestClock(
        test_mode=False,
        override_source=source,
        fallback=FrozenClock(FALLBACK),
    )
    assert clock.now() == FALLBACK
