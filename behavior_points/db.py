from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from behavior_points.config import DATABASE_URL


def utcnow() -> datetime:
    # Naive UTC timestamps, matching the TIMESTAMP columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enable_sqlite_savepoints(engine):
    """
    pysqlite starts transactions lazily and breaks SAVEPOINT; let SQLAlchemy
    emit BEGIN itself so award/balance savepoints behave like on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str, **kwargs):
    connect_args = kwargs.pop("connect_args", None) or {}
    if url.startswith("postgres"):
        connect_args.setdefault("options", "-c timezone=utc")
    if url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(url, connect_args=connect_args, **kwargs)
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(engine)
    return engine


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
