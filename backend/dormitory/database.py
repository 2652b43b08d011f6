"""Database engine and helpers.

This module owns the SQLAlchemy engine (and therefore the connection
pool) for the application and provides the helpers used by the FastAPI
app, the seeding script and the tests. By default the database is a
local SQLite file `app.db` in the backend directory; set `DATABASE_URL`
to use a server database instead.
"""

import logging
from typing import Optional
from sqlalchemy import event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from .config import settings
from .exceptions import StartupError
from . import models  # noqa: F401  (registers the tables on SQLModel.metadata)

logger = logging.getLogger("dormitory.database")


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # hand transaction control to SQLAlchemy so BEGIN is emitted by _begin_immediate
    dbapi_connection.isolation_level = None
    # sqlite ignores REFERENCES clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn):
    # take the write lock at the first statement so check-then-insert sequences serialize
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str, pool_timeout: Optional[float] = None, echo: bool = False) -> Engine:
    """Create an engine for `url` with bounded connection waits.

    SQLite engines get a busy timeout, foreign-key enforcement and
    `BEGIN IMMEDIATE` transactions: the pysqlite driver would otherwise
    run SELECTs outside any transaction, so two concurrent assignments
    could both read the last free place. With the write lock taken up
    front a second writer waits (up to the busy timeout) until the first
    commits. An in-memory SQLite URL shares one connection across
    threads so tests and scripts see the same database. Server databases
    get `pool_pre_ping` and `pool_timeout` so a starved pool raises
    instead of hanging. MySQL connections are forced to utf8mb4.
    """
    timeout = pool_timeout or settings.DB_POOL_TIMEOUT
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    if backend == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_timeout"] = timeout
        db_engine = create_engine(url, echo=echo, **kwargs)
        event.listen(db_engine, "connect", _configure_sqlite_connection)
        event.listen(db_engine, "begin", _begin_immediate)
        return db_engine
    connect_args = {}
    if backend == "mysql":
        connect_args["charset"] = "utf8mb4"
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_timeout=timeout,
        connect_args=connect_args,
    )


engine = make_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)


def create_db_and_tables(db_engine: Optional[Engine] = None):
    """Create database tables using SQLModel metadata.

    Existing tables are left untouched; there is no migration support.
    """
    SQLModel.metadata.create_all(db_engine or engine)


def check_connection(db_engine: Optional[Engine] = None):
    """Run `SELECT 1` and raise the driver error if the database is unreachable."""
    with (db_engine or engine).connect() as conn:
        conn.execute(text("SELECT 1"))


def init_database(db_engine: Optional[Engine] = None):
    """Verify connectivity and create tables, or fail with `StartupError`.

    Called once from the application lifespan. The process must not serve
    requests if this fails.
    """
    db_engine = db_engine or engine
    try:
        check_connection(db_engine)
        create_db_and_tables(db_engine)
    except SQLAlchemyError as exc:
        logger.critical("database initialisation failed: %s", exc)
        raise StartupError(f"database initialisation failed: {exc}") from exc
    logger.info("database ready (%s)", db_engine.url.render_as_string(hide_password=True))


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The session is closed when the request scope finishes, whatever the
    outcome of the handler.
    """
    with Session(engine) as session:
        yield session
