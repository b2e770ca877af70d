"""
Database engine and session factory.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from chorecoins.constants import DATABASE_URL

Base = declarative_base()


def create_db_engine(url: str = DATABASE_URL):
    """
    Create an engine for the given URL.

    SQLite connections get the pysqlite SAVEPOINT recipe so nested
    transactions (used for idempotent task inserts) behave like on
    a real server database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = create_db_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    """FastAPI dependency yielding one session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
