from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from pastebin_lite.db import Base


# Largest value a 32-bit INTEGER column holds.
MAX_VIEWS_LIMIT = 2_147_483_647
# Ten years.
MAX_TTL_SECONDS = 10 * 365 * 24 * 60 * 60


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint(
            "view_count >= 0",
            name="ck_pastes_view_count_non_negative",
        ),
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint(
            "max_views IS NULL OR view_count <= max_views",
            name="ck_pastes_view_count_within_quota",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    @validates("content")
    def _validate_immutable_content(self, key: str, value: str) -> str:
        """
        Enforce that ``content`` is immutable after initial creation.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        if getattr(self, "content", None) is not None and self.content != value:
            raise ValueError("Paste content is immutable and cannot be modified.")
        return value


@dataclass(frozen=True)
class PasteRecord:
    """Detached snapshot of a paste row."""

    id: str
    content: str
    created_at: datetime
    expires_at: Optional[datetime]
    max_views: Optional[int]
    view_count: int


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a successful, quota-consuming read."""

    id: str
    content: str
    view_count: int
    remaining_views: Optional[int]
    expires_at: Optional[datetime]
