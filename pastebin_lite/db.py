from __future__ import annotations

import typing as t

from flask import Flask
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)
)

SQLITE_BUSY_TIMEOUT_SECONDS = 15.0

# Execution option read by the SQLite "begin" hook. Read-only work passes
# READ_ONLY_EXECUTION_OPTIONS so it does not queue behind writers.
SQLITE_BEGIN_OPTION = "sqlite_begin"
READ_ONLY_EXECUTION_OPTIONS: dict[str, t.Any] = {SQLITE_BEGIN_OPTION: "DEFERRED"}


def _configure_sqlite(engine: Engine) -> None:
    """
    Make SQLite transactions take the write lock up front by default.

    pysqlite defers BEGIN until the first DML statement, which lets two
    connections each hold a read lock and then deadlock while upgrading.
    ``BEGIN IMMEDIATE`` makes the second writer wait on the busy timeout
    instead. Connections tagged with ``READ_ONLY_EXECUTION_OPTIONS`` start a
    deferred transaction and only take a shared lock.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _record) -> None:  # type: ignore[unused-variable]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn) -> None:  # type: ignore[unused-variable]
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "IMMEDIATE")
        conn.exec_driver_sql(f"BEGIN {mode}")


def create_db_engine(database_uri: str, **kwargs: t.Any) -> Engine:
    """Create an engine, applying SQLite locking settings where relevant."""
    is_sqlite = database_uri.startswith("sqlite")
    if is_sqlite:
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("timeout", SQLITE_BUSY_TIMEOUT_SECONDS)
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    engine = create_engine(database_uri, **kwargs)
    if is_sqlite:
        _configure_sqlite(engine)
    return engine


def get_engine() -> Engine:
    """
    Return the global SQLAlchemy engine.

    This expects that ``init_db(app)`` has been called during application
    startup to configure the engine from Flask config.
    """
    if _engine is None:  # type: ignore[truthy-function]
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def init_db(app: Flask) -> None:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    if _engine is not None:
        _engine.dispose()

    _engine = create_db_engine(
        database_uri,
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal.remove()
    SessionLocal.configure(bind=_engine)

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:  # type: ignore[unused-variable]
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()
