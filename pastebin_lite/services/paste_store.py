from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pastebin_lite.db import READ_ONLY_EXECUTION_OPTIONS
from pastebin_lite.domain.clock import Clock, SystemClock
from pastebin_lite.domain.errors import (
    ConflictExceededError,
    IdGenerationError,
    InvalidPasteParameters,
    PasteNotFoundError,
    StorageUnavailableError,
)
from pastebin_lite.domain.identifiers import IdGenerator, UuidIdGenerator
from pastebin_lite.domain.models import (
    MAX_TTL_SECONDS,
    MAX_VIEWS_LIMIT,
    ClaimResult,
    Paste,
    PasteRecord,
)
from pastebin_lite.domain.state_machine import (
    DEFAULT_EXPIRY_POLICY,
    ExpiryPolicy,
    PasteState,
    as_utc,
    evaluate_state,
    remaining_views,
)
from pastebin_lite.observability import get_correlation_id
from pastebin_lite.repositories.paste_repository import PasteRepository


logger = logging.getLogger(__name__)

# SQLSTATEs for serialization failure and deadlock.
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _is_transient_conflict(exc: DBAPIError) -> bool:
    """Return True for errors that mean "lost a race, try again"."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def _to_record(paste: Paste) -> PasteRecord:
    return PasteRecord(
        id=paste.id,
        content=paste.content,
        created_at=as_utc(paste.created_at),
        expires_at=as_utc(paste.expires_at) if paste.expires_at is not None else None,
        max_views=paste.max_views,
        view_count=paste.view_count,
    )


def _validate_limit(name: str, value: Any, maximum: int) -> None:
    # bool is an int subclass; True must not pass as 1.
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= maximum:
        raise InvalidPasteParameters(f"{name} must be an integer between 1 and {maximum}")


@dataclass
class PasteStore:
    """
    Owns paste persistence and the visibility rules for reads.

    One session per operation: commits on success, rolls back on any
    exception, and closes in a finally block. Returns frozen dataclasses;
    no ORM entities escape this layer.
    """

    session_factory: Callable[[], Session]
    clock: Clock = field(default_factory=SystemClock)
    id_generator: IdGenerator = field(default_factory=UuidIdGenerator)
    expiry_policy: ExpiryPolicy = DEFAULT_EXPIRY_POLICY
    max_claim_retries: int = 3

    def _now(self) -> datetime:
        return as_utc(self.clock.now()).astimezone(timezone.utc)

    def _storage_error(self, exc: Exception, operation: str) -> StorageUnavailableError:
        logger.error(
            "Storage unavailable",
            extra={
                "event": "storage_unavailable",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return StorageUnavailableError(f"Storage unavailable during {operation}.")

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create(
        self,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> PasteRecord:
        """
        Persist a new paste with ``view_count = 0``.

        ``expires_at`` is ``now + ttl_seconds`` when a TTL is given and
        ``None`` otherwise.
        """
        try:
            if not isinstance(content, str) or not content.strip():
                raise InvalidPasteParameters("content must be a non-empty string")
            _validate_limit("ttl_seconds", ttl_seconds, MAX_TTL_SECONDS)
            _validate_limit("max_views", max_views, MAX_VIEWS_LIMIT)
            now = self._now()
            expires_at = None
            if ttl_seconds is not None:
                try:
                    expires_at = now + timedelta(seconds=ttl_seconds)
                except OverflowError as exc:
                    raise InvalidPasteParameters(
                        "ttl_seconds runs past the latest representable time"
                    ) from exc
        except InvalidPasteParameters as exc:
            logger.warning(
                "Invalid parameters when creating paste",
                extra={
                    "event": "paste_create_invalid_parameters",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise

        try:
            paste_id = self.id_generator.generate()
        except IdGenerationError:
            logger.error(
                "Could not generate paste id",
                extra={
                    "event": "id_generation_failed",
                    "correlation_id": get_correlation_id(),
                },
            )
            raise

        session = self.session_factory()
        try:
            paste = PasteRepository(session=session).create_paste(
                paste_id=paste_id,
                content=content,
                created_at=now,
                expires_at=expires_at,
                max_views=max_views,
            )
            record = _to_record(paste)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            logger.error(
                "Paste id collision",
                extra={
                    "event": "id_generation_failed",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise IdGenerationError("Generated paste id already exists.") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_error(exc, "create") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "Paste created",
            extra={
                "event": "paste_created",
                "paste_id": record.id,
                "correlation_id": get_correlation_id(),
            },
        )
        return record

    # -------------------------------------------------------------------------
    # Consuming read
    # -------------------------------------------------------------------------
    def claim_view(self, paste_id: str) -> ClaimResult:
        """
        Consume one view of a paste and return its content.

        Raises ``PasteNotFoundError`` when the paste is absent, expired or
        has no views left; all three are indistinguishable.
        """
        try:
            return self._claim_with_retries(paste_id)
        except ConflictExceededError as exc:
            raise self._storage_error(exc, "claim") from exc

    def _claim_with_retries(self, paste_id: str) -> ClaimResult:
        for attempt in range(1, self.max_claim_retries + 2):
            session = self.session_factory()
            try:
                row = PasteRepository(session=session).claim_view_atomic(
                    paste_id,
                    now=self._now(),
                    policy=self.expiry_policy,
                )
                if row is None:
                    logger.info(
                        "Paste claim rejected",
                        extra={
                            "event": "paste_claim_rejected",
                            "paste_id": paste_id,
                            "correlation_id": get_correlation_id(),
                        },
                    )
                    raise PasteNotFoundError()
                session.commit()
            except DBAPIError as exc:
                session.rollback()
                if not _is_transient_conflict(exc):
                    raise self._storage_error(exc, "claim") from exc
                logger.warning(
                    "Paste claim lost a race; retrying",
                    extra={
                        "event": "paste_claim_conflict",
                        "paste_id": paste_id,
                        "attempt": attempt,
                        "error_type": type(exc).__name__,
                        "correlation_id": get_correlation_id(),
                    },
                )
                continue
            except SQLAlchemyError as exc:
                session.rollback()
                raise self._storage_error(exc, "claim") from exc
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

            result = ClaimResult(
                id=row.id,
                content=row.content,
                view_count=row.view_count,
                remaining_views=remaining_views(row.max_views, row.view_count),
                expires_at=as_utc(row.expires_at) if row.expires_at is not None else None,
            )
            logger.info(
                "Paste claimed",
                extra={
                    "event": "paste_claimed",
                    "paste_id": paste_id,
                    "view_count": result.view_count,
                    "correlation_id": get_correlation_id(),
                },
            )
            return result

        raise ConflictExceededError(
            f"Claim on paste {paste_id} conflicted {self.max_claim_retries + 1} times."
        )

    # -------------------------------------------------------------------------
    # Non-consuming read
    # -------------------------------------------------------------------------
    def peek(self, paste_id: str) -> PasteRecord:
        """
        Return a visible paste without consuming a view.

        Applies the same expiry and quota rules as ``claim_view``.
        """
        session = self.session_factory()
        try:
            session.connection(execution_options=READ_ONLY_EXECUTION_OPTIONS)
            paste = PasteRepository(session=session).get_paste_by_id(paste_id)
            state = None
            if paste is not None:
                state = evaluate_state(
                    expires_at=paste.expires_at,
                    max_views=paste.max_views,
                    view_count=paste.view_count,
                    now=self._now(),
                    policy=self.expiry_policy,
                )
            if paste is None or state is not PasteState.ACTIVE:
                logger.info(
                    "Paste peek rejected",
                    extra={
                        "event": "paste_peek_rejected",
                        "paste_id": paste_id,
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise PasteNotFoundError()
            record = _to_record(paste)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_error(exc, "peek") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return record
