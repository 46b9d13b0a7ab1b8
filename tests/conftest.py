from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastebin_lite import create_app
from pastebin_lite.db import Base, create_db_engine, get_engine
from pastebin_lite.domain import models as _models  # noqa: F401
from pastebin_lite.services.paste_store import PasteStore


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock whose time only moves when a test moves it."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """
    File-backed SQLite engine per test function.

    A file rather than ``:memory:`` so that worker threads in the
    concurrency tests each get their own connection to the same database.
    """

    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'pastes.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def store(session_factory: sessionmaker[Session], clock: ManualClock) -> PasteStore:
    return PasteStore(session_factory=session_factory, clock=clock)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_app(tmp_path) -> Callable[..., Flask]:
    """Build a testing app on a fresh SQLite file; keyword args override config."""

    def _make(**overrides: Any) -> Flask:
        config = {
            "SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'api.db'}",
            "BASE_URL": "https://paste.test",
        }
        config.update(overrides)
        app = create_app("testing", config_overrides=config)
        Base.metadata.create_all(get_engine())
        return app

    return _make


@pytest.fixture
def app(make_app: Callable[..., Flask]) -> Flask:
    return make_app()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
