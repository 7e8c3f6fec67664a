from collections.abc import Generator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import URL, Engine, make_url
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings


def _is_sqlite_memory(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def create_db_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign keys on, file databases WAL."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return create_engine(url, echo=False, **kwargs)

    in_memory = _is_sqlite_memory(parsed)
    connect_args = kwargs.pop("connect_args", {})
    connect_args.setdefault("check_same_thread", False)
    engine = create_engine(url, echo=False, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


engine = create_db_engine(settings.database_url)


def init_db(bind: Engine | None = None) -> None:
    """Create tables and indexes if missing. Safe to call repeatedly."""
    import app.models  # noqa: F401  register all models with SQLModel metadata

    bind = bind or engine
    if bind.url.drivername.startswith("sqlite") and not _is_sqlite_memory(bind.url):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
