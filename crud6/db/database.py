"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with an in-memory
SQLite fallback for tests, resolves named connections (``model@connection``
routes) and exposes FastAPI dependencies.
"""
import logging
import os
import sys
from typing import Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crud6.exceptions import ConnectionNotConfigured

logger = logging.getLogger(__name__)

_SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def _get_database_url() -> str:
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = [
            name
            for name, value in (
                ("POSTGRES_USER", db_user),
                ("POSTGRES_PASSWORD", db_password),
                ("POSTGRES_HOST", db_host),
                ("POSTGRES_PORT", db_port),
                ("POSTGRES_DB", db_name),
            )
            if not value
        ]
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so collection time
    is detected through the pytest module being imported already.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite") and ":memory:" in url:
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


explicit_test_db = os.getenv("CRUD6_TEST_DB")

if explicit_test_db:
    DATABASE_URL = explicit_test_db
elif _is_pytest_runtime():
    # In-memory SQLite with StaticPool so the schema persists across connections
    DATABASE_URL = _SQLITE_MEMORY_URL
else:
    DATABASE_URL = _get_database_url()

engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Named connections, e.g. CRUD6_CONNECTION_ANALYTICS=postgresql://...
_named_engines: Dict[str, Engine] = {}


def connection_url(name: str) -> Optional[str]:
    return os.getenv(f"CRUD6_CONNECTION_{name.upper()}")


def get_engine(connection: Optional[str] = None) -> Engine:
    """Return the engine for a named connection, or the default engine."""
    if not connection:
        return engine
    if connection in _named_engines:
        return _named_engines[connection]
    url = connection_url(connection)
    if not url:
        raise ConnectionNotConfigured(f"Database connection '{connection}' is not configured")
    logger.info("db_connection_open: name=%s", connection)
    named = create_engine(url, **_engine_kwargs(url))
    _named_engines[connection] = named
    return named


def session_for(connection: Optional[str] = None) -> Session:
    """Open a session bound to the requested connection."""
    return SessionLocal(bind=get_engine(connection))


def dispose_named_engines() -> None:
    for named in _named_engines.values():
        named.dispose()
    _named_engines.clear()


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
