"""
Results core database bindings and functions using sqlalchemy
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine as _Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool


DEFAULT_DATABASE_URL: str = "sqlite://"
PRINT_SQLITE_WARNING: bool = True

Base = declarative_base()
Base.__allow_unmapped__ = True
_engine: Optional[_Engine] = None
_make_session: Optional[sessionmaker] = None
_logger: logging.Logger = logging.getLogger(__name__)


def _is_in_memory(database_url: str) -> bool:
    return database_url == "sqlite://" or ":memory:" in database_url


def _enable_sqlite_foreign_keys(dbapi_connection, _):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(database_url: str, echo: bool = False) -> _Engine:
    """
    Create a sqlite engine usable by multiple threads that enforces foreign keys

    In-memory databases share one single connection, since every new
    connection would otherwise create a new and therefore empty database.
    """

    opts = {"poolclass": StaticPool} if _is_in_memory(database_url) else {}
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False},
        **opts
    )
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init(database_url: str, echo: bool = True, create_all: bool = True):
    """
    Bind the module to the database at the given URL, replacing a previous binding

    Call this function once during startup before any session is requested.
    Requesting sessions or the engine beforehand binds the module to the
    ``DEFAULT_DATABASE_URL`` instead, which is an empty in-memory database.

    :param database_url: the full URL to connect to the database
    :param echo: whether SQLAlchemy should log all statements
    :param create_all: whether missing tables of the declarative base should be created
    """

    global _engine, _make_session
    if _engine is not None:
        _engine.dispose()

    if database_url.startswith("sqlite:"):
        if _is_in_memory(database_url):
            _logger.warning("The in-memory sqlite database will be lost when the process exits.")
        elif PRINT_SQLITE_WARNING:
            _logger.warning("sqlite is meant for development and testing, use a database server in production.")
        _engine = create_sqlite_engine(database_url, echo)
    else:
        _engine = create_engine(database_url, echo=echo)

    if create_all:
        Base.metadata.create_all(bind=_engine)
    _make_session = sessionmaker(autoflush=False, bind=_engine)


def _ensure_initialized():
    if _engine is None or _make_session is None:
        _logger.warning(
            f"Database accessed before calling 'init', using {DEFAULT_DATABASE_URL!r}. "
            "Nothing will be persisted."
        )
        init(DEFAULT_DATABASE_URL)


def get_engine() -> _Engine:
    _ensure_initialized()
    return _engine


def get_new_session() -> Session:
    _ensure_initialized()
    return _make_session()
