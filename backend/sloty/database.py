from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings

# Connection execution option: begin the transaction holding the write lock
WRITE_LOCK_OPTION = "sloty_write_lock"


def build_engine(url: str, timeout_seconds: float | None = None) -> Engine:
    """
    Create an engine for the appointment store.

    SQLite gets three connection-level tweaks:
    - check_same_thread=False, FastAPI runs sync endpoints in a thread pool
    - foreign keys on
    - transactions begin DEFERRED, or IMMEDIATE when the connection carries
      the WRITE_LOCK_OPTION execution option (reservations), so writers are
      serialised while plain reads never wait on the write lock
    """
    timeout_seconds = timeout_seconds or settings.reservation_timeout_seconds

    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    db_path = url.replace("sqlite:///", "", 1)
    if db_path and db_path != url and not db_path.startswith(":memory:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": timeout_seconds},
    )

    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, _):
        # Hand transaction control to SQLAlchemy (pysqlite defers BEGIN otherwise)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings.resolved_database_url)

# SessionLocal: the main way to work with the DB
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (idempotent)."""
    from .models import Base

    Base.metadata.create_all(bind=bind or engine)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
