# fantasy_market/db/engine.py
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fantasy_market.core.config import settings

# Load .env for local dev
load_dotenv()

DATABASE_URL = settings.DATABASE_URL or "sqlite:///./fantasy_market.db"
SQLITE_BUSY_TIMEOUT = 15  # seconds a writer waits for the lock


def _enable_sqlite_savepoints(sqlite_engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT; emit it ourselves.
    # IMMEDIATE takes the write lock up front so concurrent writers queue on the busy
    # timeout instead of failing to upgrade a read lock mid-transaction.
    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> Engine:
    """Engine with pool/keepalive tuning for Postgres; plain defaults for SQLite."""
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
            **kwargs,
        )
        _enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args = {
            "sslmode": "require",      # hosted DBs drop non-SSL sessions
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        }

    return create_engine(
        url,
        pool_pre_ping=True,     # automatically tests and replaces stale conns
        pool_recycle=300,
        pool_size=10,
        max_overflow=10,
        pool_timeout=10,
        echo=False,
        future=True,
        connect_args=connect_args,
        **kwargs,
    )


def build_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,
        future=True,
    )


engine = build_engine(DATABASE_URL)
SessionLocal = build_sessionmaker(engine)
