"""
Database session management (SQLAlchemy)
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for all ORM models
    """
    pass


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores REFERENCES clauses unless the pragma is set per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    """Create an engine with foreign key enforcement switched on."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    else:
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, echo=echo, **kwargs)
    enable_sqlite_foreign_keys(engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False: rows handed to callers stay readable after the session closes
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

