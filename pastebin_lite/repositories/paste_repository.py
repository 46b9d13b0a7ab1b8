from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import ColumnElement, Row, Select, Update, or_, select, update
from sqlalchemy.orm import Session

from pastebin_lite.domain.models import Paste
from pastebin_lite.domain.state_machine import DEFAULT_EXPIRY_POLICY, ExpiryPolicy
from pastebin_lite.observability import get_correlation_id


logger = logging.getLogger(__name__)


def visible_clause(now: datetime, policy: ExpiryPolicy) -> ColumnElement[bool]:
    """
    SQL mirror of ``state_machine.evaluate_state(...) is PasteState.ACTIVE``.

    Kept next to the repository so ``claim_view_atomic`` and Python-side
    evaluation stay on the same side of every boundary.
    """

    if policy is ExpiryPolicy.INCLUSIVE:
        within_deadline = Paste.expires_at >= now
    else:
        within_deadline = Paste.expires_at > now

    return (
        or_(Paste.expires_at.is_(None), within_deadline)
        & or_(Paste.max_views.is_(None), Paste.view_count < Paste.max_views)
    )


class PasteRepository:
    """
    Repository for Paste records.

    All database interaction for Paste should go through this class. The
    caller owns the session and is responsible for committing.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_paste(
        self,
        *,
        paste_id: str,
        content: str,
        created_at: datetime,
        expires_at: Optional[datetime] = None,
        max_views: Optional[int] = None,
    ) -> Paste:
        """
        Create and persist a new Paste with ``view_count = 0``.

        Note: Paste content is set only at creation time and is not exposed
        for updates via this repository.
        """

        paste = Paste(
            id=paste_id,
            content=content,
            created_at=created_at,
            expires_at=expires_at,
            max_views=max_views,
            view_count=0,
        )
        self._session.add(paste)
        # Flush so primary key collisions surface here.
        self._session.flush()
        return paste

    def get_paste_by_id(self, paste_id: str) -> Optional[Paste]:
        """Return a Paste by its id, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def claim_view_atomic(
        self,
        paste_id: str,
        *,
        now: datetime,
        policy: ExpiryPolicy = DEFAULT_EXPIRY_POLICY,
    ) -> Optional[Row]:
        """
        Consume one view of a visible Paste in a single conditional UPDATE.

        The expiry check, the quota comparison and the increment are one
        statement, so concurrent claims on the last slot cannot both pass.
        Returns the post-increment row, or ``None`` when the paste is absent,
        expired or out of views.
        """

        stmt: Update = (
            update(Paste)
            .where(Paste.id == paste_id, visible_clause(now, policy))
            .values(view_count=Paste.view_count + 1)
            .returning(
                Paste.id,
                Paste.content,
                Paste.view_count,
                Paste.max_views,
                Paste.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        row = self._session.execute(stmt).one_or_none()

        logger.debug(
            "Paste claim statement executed",
            extra={
                "event": "paste_claim_statement",
                "paste_id": paste_id,
                "view_count": None if row is None else row.view_count,
                "correlation_id": get_correlation_id(),
            },
        )
        return row
