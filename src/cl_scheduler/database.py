"""Engine and session helpers for the shared scheduler database."""

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .errors import SchedulerError
from .models import Base

# INSERT constructs with ON CONFLICT support, by dialect name
_UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def create_db_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create an engine for the shared scheduler database.

    SQLite connections get WAL journaling and a busy timeout so several
    scheduler processes can poll the same file.

    Args:
        database_url: SQLAlchemy database URL
        **kwargs: Extra arguments passed to ``create_engine``

    Returns:
        SQLAlchemy engine
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    engine = create_engine(database_url, **kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # pyright: ignore[reportUnusedFunction]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create the scheduler tables if they don't exist."""
    Base.metadata.create_all(engine)


def upsert_insert(session: Session, model: type[Base]) -> Any:
    """INSERT for ``model`` supporting ``on_conflict_do_*`` on the session's database.

    Raises:
        SchedulerError: If the database has no ON CONFLICT support here
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _UPSERT_INSERTS[dialect]
    except KeyError:
        raise SchedulerError(f"Unsupported database dialect: {dialect}") from None
    return insert(model)
