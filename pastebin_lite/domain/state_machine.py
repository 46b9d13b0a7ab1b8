from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Iterable, Optional


class PasteState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    QUOTA_EXHAUSTED = "QUOTA_EXHAUSTED"


class ExpiryPolicy(str, enum.Enum):
    """Which side of ``now == expires_at`` a paste falls on."""

    # Still readable at exactly expires_at; expired once now > expires_at.
    INCLUSIVE = "inclusive"
    # Expired as soon as now >= expires_at.
    EXCLUSIVE = "exclusive"


DEFAULT_EXPIRY_POLICY = ExpiryPolicy.INCLUSIVE


def coerce_policy(value: ExpiryPolicy | str) -> ExpiryPolicy:
    """Normalize config values to ``ExpiryPolicy``."""
    if isinstance(value, ExpiryPolicy):
        return value
    try:
        return ExpiryPolicy(str(value).lower())
    except ValueError as exc:
        valid: Iterable[str] = (p.value for p in ExpiryPolicy)
        raise ValueError(
            f"Unknown expiry policy {value!r}. Valid policies: {', '.join(valid)}"
        ) from exc


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_time_expired(
    expires_at: Optional[datetime],
    now: datetime,
    policy: ExpiryPolicy = DEFAULT_EXPIRY_POLICY,
) -> bool:
    if expires_at is None:
        return False
    expires_at = as_utc(expires_at)
    if policy is ExpiryPolicy.INCLUSIVE:
        return now > expires_at
    return now >= expires_at


def is_quota_exhausted(max_views: Optional[int], view_count: int) -> bool:
    return max_views is not None and view_count >= max_views


def evaluate_state(
    *,
    expires_at: Optional[datetime],
    max_views: Optional[int],
    view_count: int,
    now: datetime,
    policy: ExpiryPolicy = DEFAULT_EXPIRY_POLICY,
) -> PasteState:
    """
    Derive the state of a paste at ``now``.

    - ``EXPIRED`` when the time limit has passed under ``policy``.
    - ``QUOTA_EXHAUSTED`` when ``view_count`` has reached ``max_views``.
    - ``ACTIVE`` otherwise.

    Time expiry is reported first when both apply. Both terminal states are
    irreversible: ``view_count`` never decreases and ``expires_at`` never
    moves, so only a clock running backwards could revive a paste.
    """

    if is_time_expired(expires_at, now, policy):
        return PasteState.EXPIRED
    if is_quota_exhausted(max_views, view_count):
        return PasteState.QUOTA_EXHAUSTED
    return PasteState.ACTIVE


def remaining_views(max_views: Optional[int], view_count: int) -> Optional[int]:
    if max_views is None:
        return None
    return max(0, max_views - view_count)
