"""Engine and session factory for Gatekeeper.

The core services never import ``SessionLocal``; they take a ``Session``
argument. Only the API dependencies and CLI seeding open sessions here.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from gatekeeper.core.config import get_settings


def create_db_engine(database_url: str, echo: bool = False, **engine_kwargs) -> Engine:
    """Create an engine, enabling foreign keys on SQLite."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, echo=echo, connect_args=connect_args, **engine_kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


settings = get_settings()

engine = create_db_engine(settings.database_url, echo=settings.database_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False)
