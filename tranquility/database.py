from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def use_immediate_transactions(engine):
    """
    Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    pysqlite only emits BEGIN before the first write, so reads made inside a
    unit of work run without the database write lock and ``FOR UPDATE`` is
    ignored by SQLite. Taking the write lock at BEGIN makes the
    check-then-insert on the booking path atomic across processes.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_db_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url)
    engine = create_engine(url, connect_args={"check_same_thread": False})
    return use_immediate_transactions(engine)


engine = create_db_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
